"""Domain events and the bus that turns them into cache invalidation."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import TypeVar

from pydantic import BaseModel, Field

from tagcache.grids import GridCache

logger = logging.getLogger(__name__)

E = TypeVar("E", bound="CacheEvent")


class TermAction(StrEnum):
    CREATED = "created"
    EDITED = "edited"
    DELETED = "deleted"


class CacheEvent(BaseModel):
    """Base for state changes that can stale cached data."""

    timestamp: float = Field(default_factory=time.time)


class GridUpdated(CacheEvent):
    grid: int | str


class GridDeleted(CacheEvent):
    grid: int | str


class TermChanged(CacheEvent):
    term_id: int | str
    action: TermAction = TermAction.EDITED


class TermMetaUpdated(CacheEvent):
    term_id: int | str
    meta_key: str


class SettingsUpdated(CacheEvent):
    pass


class ProductUpdated(CacheEvent):
    product_id: int | str
    category_ids: list[int | str] = Field(default_factory=list)


Handler = Callable[[CacheEvent], None]


class EventBus:
    """Synchronous in-process publish/subscribe with an append-only history."""

    def __init__(self) -> None:
        self._handlers: dict[type[CacheEvent], list[Handler]] = {}
        self._history: list[CacheEvent] = []

    def subscribe(self, event_type: type[E], handler: Callable[[E], None]) -> None:
        self._handlers.setdefault(event_type, []).append(handler)  # type: ignore[arg-type]

    def publish(self, event: CacheEvent) -> int:
        """Deliver ``event`` to handlers of its type and base types. Returns handler count."""
        self._history.append(event)
        delivered = 0
        for event_type in type(event).__mro__:
            for handler in self._handlers.get(event_type, ()):
                handler(event)
                delivered += 1
        logger.debug("Published %s to %d handlers", type(event).__name__, delivered)
        return delivered

    @property
    def history(self) -> list[CacheEvent]:
        return list(self._history)

    def __len__(self) -> int:
        return len(self._history)


class CacheInvalidationSubscriber:
    """Maps each domain event onto the matching ``GridCache`` clear operation."""

    def __init__(self, grid_cache: GridCache) -> None:
        self._grids = grid_cache

    def attach(self, bus: EventBus) -> None:
        bus.subscribe(GridUpdated, self.on_grid_changed)
        bus.subscribe(GridDeleted, self.on_grid_changed)
        bus.subscribe(TermChanged, self.on_term_changed)
        bus.subscribe(TermMetaUpdated, self.on_term_meta_updated)
        bus.subscribe(SettingsUpdated, self.on_settings_updated)
        bus.subscribe(ProductUpdated, self.on_product_updated)

    def on_grid_changed(self, event: GridUpdated | GridDeleted) -> None:
        self._grids.clear_grid_cache(event.grid)

    def on_term_changed(self, event: TermChanged) -> None:
        self._grids.clear_term_cache(event.term_id)

    def on_term_meta_updated(self, event: TermMetaUpdated) -> None:
        self._grids.handle_term_meta_update(event.term_id, event.meta_key)

    def on_settings_updated(self, event: SettingsUpdated) -> None:
        self._grids.clear_all_cache()

    def on_product_updated(self, event: ProductUpdated) -> None:
        self._grids.clear_product_cache(event.product_id, event.category_ids)
