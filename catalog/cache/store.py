"""
Row stores backing the TTL and durable caches.

MemoryStore keeps rows for the process lifetime only; SqlStore persists them
through SQLAlchemy so caches survive restarts. Both satisfy RowStore.
"""
import json
import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Protocol

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session, sessionmaker

from catalog.models import CacheRow
from .core import StoredRow

logger = logging.getLogger("cache.store")


class RowStore(Protocol):
    """Key-value row store contract used by the caches."""

    def load(self, key: str) -> Optional[StoredRow]:
        ...

    def save(
        self,
        key: str,
        value: Any,
        stored_at: float,
        parent_id: Optional[str] = None,
    ) -> None:
        ...

    def clear(self) -> int:
        ...

    def __len__(self) -> int:
        ...


class MemoryStore:
    """In-memory row store (non-persistent deployments and tests)."""

    def __init__(self):
        self._rows: Dict[str, StoredRow] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> Optional[StoredRow]:
        return self._rows.get(key)

    def save(
        self,
        key: str,
        value: Any,
        stored_at: float,
        parent_id: Optional[str] = None,
    ) -> None:
        with self._lock:
            self._rows[key] = StoredRow(value=value, stored_at=stored_at, parent_id=parent_id)

    def clear(self) -> int:
        with self._lock:
            count = len(self._rows)
            self._rows.clear()
        return count

    def __len__(self) -> int:
        return len(self._rows)


class SqlStore:
    """
    SQLAlchemy-backed row store.

    Values are stored as JSON text, so only JSON-compatible values can be
    cached. Each cache uses its own namespace within the cache_entries table.
    """

    def __init__(self, session_factory: sessionmaker, namespace: str):
        self._session_factory = session_factory
        self.namespace = namespace

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def load(self, key: str) -> Optional[StoredRow]:
        with self._session() as session:
            row = session.get(CacheRow, (self.namespace, key))
            if row is None:
                return None
            return StoredRow(
                value=json.loads(row.value),
                stored_at=row.stored_at,
                parent_id=row.parent_id,
            )

    def save(
        self,
        key: str,
        value: Any,
        stored_at: float,
        parent_id: Optional[str] = None,
    ) -> None:
        payload = json.dumps(value)
        with self._session() as session:
            session.merge(
                CacheRow(
                    namespace=self.namespace,
                    cache_key=key,
                    parent_id=parent_id,
                    value=payload,
                    stored_at=stored_at,
                )
            )

    def clear(self) -> int:
        with self._session() as session:
            result = session.execute(
                delete(CacheRow).where(CacheRow.namespace == self.namespace)
            )
            count = result.rowcount or 0
        logger.info(f"Cleared {count} persisted rows from '{self.namespace}'")
        return count

    def __len__(self) -> int:
        with self._session() as session:
            return session.execute(
                select(func.count())
                .select_from(CacheRow)
                .where(CacheRow.namespace == self.namespace)
            ).scalar_one()
