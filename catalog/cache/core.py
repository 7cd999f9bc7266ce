"""
Core cache data structures.
"""
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class StoredRow:
    """
    A row as kept by a row store.

    parent_id is only set for durable entity rows.
    """
    value: Any
    stored_at: float
    parent_id: Optional[str] = None


@dataclass(frozen=True)
class CacheEntry:
    """
    A TTL cached value with the timestamp it was stored at.
    """
    value: Any
    stored_at: float

    def age_seconds(self, now: float) -> float:
        """Seconds since the value was stored."""
        return now - self.stored_at

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        """Check if the value is still visible to readers."""
        return self.age_seconds(now) < ttl_seconds


@dataclass(frozen=True)
class DurableEntry:
    """
    A secondary id pointing at the whole parent object it was extracted from.
    """
    secondary_id: str
    parent_id: Optional[str]
    parent_object: Any
