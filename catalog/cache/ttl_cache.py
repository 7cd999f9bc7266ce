"""
Fixed-lifetime cache for search results and the styles catalog.
"""
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from .core import CacheEntry
from .store import MemoryStore, RowStore

logger = logging.getLogger("cache.ttl")


class TTLCache:
    """
    Key -> value cache with a single time-to-live.

    - Expiry is evaluated lazily on read; expired rows stay in the store
      until overwritten or invalidated
    - set() always overwrites, regardless of any prior entry
    - invalidate_all() is reserved for the administrative refresh

    Usage:
        cache = TTLCache(ttl_seconds=3600)
        cache.set("styles:catalog", data)
        data = cache.get("styles:catalog")  # None on miss
    """

    def __init__(
        self,
        ttl_seconds: float,
        store: Optional[RowStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the cache.

        Args:
            ttl_seconds: Lifetime of an entry
            store: Row store (defaults to an in-memory store)
            clock: Wall clock in seconds; stored timestamps outlive the process
        """
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.ttl_seconds = ttl_seconds
        self._store = store if store is not None else MemoryStore()
        self._clock = clock
        self._stats = {"hits": 0, "misses": 0, "writes": 0}
        self._stats_lock = threading.Lock()

    def _count(self, name: str, amount: int = 1) -> None:
        with self._stats_lock:
            self._stats[name] += amount

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or None if absent or expired."""
        row = self._store.load(key)
        if row is None:
            logger.debug(f"CACHE MISS: {key}")
            self._count("misses")
            return None

        entry = CacheEntry(value=row.value, stored_at=row.stored_at)
        now = self._clock()
        if not entry.is_fresh(now, self.ttl_seconds):
            logger.debug(f"CACHE EXPIRED: {key} [age={entry.age_seconds(now):.1f}s]")
            self._count("misses")
            return None

        logger.debug(f"CACHE HIT: {key} [age={entry.age_seconds(now):.1f}s]")
        self._count("hits")
        return entry.value

    def set(self, key: str, value: Any) -> None:
        """Store a value with a fresh timestamp."""
        self._store.save(key, value, self._clock())
        self._count("writes")

    def invalidate_all(self) -> int:
        """
        Clear every entry.

        Returns:
            Number of entries cleared
        """
        count = self._store.clear()
        logger.info(f"Cleared {count} cache entries")
        return count

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        with self._stats_lock:
            stats = dict(self._stats)
        total = stats["hits"] + stats["misses"]
        hit_rate = (stats["hits"] / total * 100) if total > 0 else 0
        return {
            "entries": len(self._store),
            "ttl_seconds": self.ttl_seconds,
            "hits": stats["hits"],
            "misses": stats["misses"],
            "writes": stats["writes"],
            "hit_rate_percent": round(hit_rate, 1),
        }
