"""
Two-tier caching: a fixed-TTL cache, a durable per-entity cache, key derivation,
and request coalescing.
"""
from .core import CacheEntry, DurableEntry, StoredRow
from .keys import SearchDescriptor, derive_search_key, model_key, version_key
from .store import MemoryStore, RowStore, SqlStore
from .ttl_cache import TTLCache
from .durable import DurableEntityCache, extract_version_ids
from .coalescer import RequestCoalescer

__all__ = [
    # Core types
    "CacheEntry",
    "DurableEntry",
    "StoredRow",
    # Keys
    "SearchDescriptor",
    "derive_search_key",
    "model_key",
    "version_key",
    # Stores
    "MemoryStore",
    "RowStore",
    "SqlStore",
    # Caches
    "TTLCache",
    "DurableEntityCache",
    "extract_version_ids",
    # Coalescing
    "RequestCoalescer",
]
