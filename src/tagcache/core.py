"""Factory functions that assemble a configured cache."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from typing import Any

from tagcache.cache.disk import DiskStore
from tagcache.cache.manager import TagCache
from tagcache.config.hierarchy import load_config_hierarchy
from tagcache.config.schema import CacheSettings
from tagcache.errors.exceptions import BackingStoreUnavailable
from tagcache.grids import GridCache, GridRepository
from tagcache.types import Clock

logger = logging.getLogger(__name__)


def load_settings(**overrides: Any) -> CacheSettings:
    """Resolve the config hierarchy into validated settings."""
    return CacheSettings.from_mapping(load_config_hierarchy(**overrides))


def create_cache(
    settings: CacheSettings | None = None,
    clock: Clock = time.time,
    **overrides: Any,
) -> TagCache:
    """Build a TagCache, with a SQLite tier when persistence is enabled.

    If the database cannot be opened the cache starts memory-only, unless
    ``raise_backing_errors`` is set.
    """
    settings = settings or load_settings(**overrides)

    backing: DiskStore | None = None
    if settings.enabled and settings.disk_enabled:
        try:
            backing = DiskStore(db_path=settings.disk_path, clock=clock)
        except BackingStoreUnavailable as e:
            if settings.raise_backing_errors:
                raise
            logger.warning("Persistent cache unavailable, using memory only: %s", e)

    return TagCache(
        backing=backing,
        clock=clock,
        version=settings.version,
        enabled=settings.enabled,
        default_ttl=settings.default_ttl,
        raise_backing_errors=settings.raise_backing_errors,
    )


def create_grid_cache(
    repository: GridRepository,
    resolve_ancestors: Callable[[int | str], Sequence[int | str]] | None = None,
    settings: CacheSettings | None = None,
    clock: Clock = time.time,
    **overrides: Any,
) -> GridCache:
    settings = settings or load_settings(**overrides)
    return GridCache(
        create_cache(settings, clock=clock),
        repository,
        resolve_ancestors=resolve_ancestors,
        grid_ttl=settings.grid_ttl,
        output_ttl=settings.default_ttl,
    )
