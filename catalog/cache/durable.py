"""
Long-lived cache mapping child ids (e.g. LoRA version ids) to their parent.

Resolving a version id upstream takes two calls (version -> model id, then
model). Once a model has been seen, every one of its versions resolves from
here without touching the network. Entries never expire.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from .core import DurableEntry
from .store import MemoryStore, RowStore

logger = logging.getLogger("cache.durable")

ChildIdExtractor = Callable[[Any], Iterable[Any]]


def _valid_id(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, (int, str)):
        return str(value).strip() != ""
    return False


def extract_version_ids(model: Any) -> List[Any]:
    """
    Pull version ids out of a CivitAI model document.

    Returns an empty list for anything that does not look like a model.
    """
    if not isinstance(model, dict):
        return []
    versions = model.get("modelVersions")
    if not isinstance(versions, list):
        return []
    return [v.get("id") for v in versions if isinstance(v, dict)]


class DurableEntityCache:
    """
    secondary id -> whole parent object, with no expiry.

    Writes for the same secondary id overwrite in place.
    """

    def __init__(
        self,
        store: Optional[RowStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        self._store = store if store is not None else MemoryStore()
        self._clock = clock
        self._stats = {"hits": 0, "misses": 0, "writes": 0, "skipped_parents": 0}
        self._stats_lock = threading.Lock()

    def _count(self, name: str, amount: int = 1) -> None:
        with self._stats_lock:
            self._stats[name] += amount

    def get(self, secondary_id: Any) -> Optional[Any]:
        """Return the parent object recorded for this id, or None."""
        row = self._store.load(str(secondary_id))
        if row is None:
            self._count("misses")
            return None
        self._count("hits")
        return row.value

    def get_entry(self, secondary_id: Any) -> Optional[DurableEntry]:
        """Return the full durable entry, including the parent id."""
        key = str(secondary_id)
        row = self._store.load(key)
        if row is None:
            return None
        return DurableEntry(secondary_id=key, parent_id=row.parent_id, parent_object=row.value)

    def record_parent(
        self,
        parent: Any,
        extract_child_ids: ChildIdExtractor,
        parent_id: Optional[Any] = None,
    ) -> int:
        """
        Map every child id of a parent back to the parent itself.

        A parent with no children, or with malformed children, is a no-op.

        Args:
            parent: The full parent object to cache
            extract_child_ids: Pulls the child ids out of the parent
            parent_id: Primary id of the parent (recorded alongside each row)

        Returns:
            Number of child ids written
        """
        try:
            child_ids = list(extract_child_ids(parent))
        except (TypeError, KeyError, AttributeError, ValueError) as e:
            logger.warning(f"Could not extract child ids from parent {parent_id}: {e}")
            self._count("skipped_parents")
            return 0

        valid_ids = [str(child_id) for child_id in child_ids if _valid_id(child_id)]
        if len(valid_ids) < len(child_ids):
            logger.warning(
                f"Skipped {len(child_ids) - len(valid_ids)} invalid child ids "
                f"for parent {parent_id}"
            )
        if not valid_ids:
            self._count("skipped_parents")
            return 0

        stored_parent_id = str(parent_id) if parent_id is not None else None
        now = self._clock()
        for child_id in valid_ids:
            self._store.save(child_id, parent, now, parent_id=stored_parent_id)

        self._count("writes", len(valid_ids))
        logger.debug(f"Recorded {len(valid_ids)} child ids for parent {parent_id}")
        return len(valid_ids)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._stats_lock:
            stats = dict(self._stats)
        return {"entries": len(self._store), **stats}
