"""tagcache — in-process cache with tag-indexed and hierarchical invalidation."""

from tagcache.cache import CacheEntry, CacheStats, DiskStore, TagCache, build_cache_key
from tagcache.core import create_cache, create_grid_cache, load_settings
from tagcache.errors import BackingStoreUnavailable, TagCacheError
from tagcache.events import CacheInvalidationSubscriber, EventBus
from tagcache.grids import Grid, GridCache
from tagcache.hierarchy import ParentMapResolver
from tagcache.types import MISS

__version__ = "0.1.0"

__all__ = [
    "MISS",
    "TagCache",
    "DiskStore",
    "CacheEntry",
    "CacheStats",
    "build_cache_key",
    "Grid",
    "GridCache",
    "EventBus",
    "CacheInvalidationSubscriber",
    "ParentMapResolver",
    "BackingStoreUnavailable",
    "TagCacheError",
    "create_cache",
    "create_grid_cache",
    "load_settings",
]
