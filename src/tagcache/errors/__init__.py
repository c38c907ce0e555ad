"""Error handling — exception hierarchy for the cache and its backing stores."""

from tagcache.errors.exceptions import (
    BackingStoreUnavailable,
    ConfigError,
    TagCacheError,
)

__all__ = [
    "TagCacheError",
    "BackingStoreUnavailable",
    "ConfigError",
]
