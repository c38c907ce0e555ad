"""Cache subsystem — two-tier (memory + SQLite) store with tag-indexed invalidation."""

from tagcache.cache.disk import DiskStore
from tagcache.cache.keys import GRID_KEY_FIELDS, build_cache_key, normalize_settings
from tagcache.cache.manager import BackingStore, TagAwareStore, TagCache
from tagcache.cache.memory import MemoryStore
from tagcache.cache.stats import CacheEntry, CacheStats
from tagcache.cache.tag_index import TagIndex

__all__ = [
    "TagCache",
    "BackingStore",
    "TagAwareStore",
    "DiskStore",
    "MemoryStore",
    "TagIndex",
    "CacheEntry",
    "CacheStats",
    "GRID_KEY_FIELDS",
    "build_cache_key",
    "normalize_settings",
]
