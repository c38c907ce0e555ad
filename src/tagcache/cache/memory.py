"""L1 in-memory store with lazy expiry and a tag index."""

from __future__ import annotations

import time
from collections.abc import Iterator

from tagcache.cache.stats import CacheEntry
from tagcache.cache.tag_index import TagIndex
from tagcache.types import Clock


class MemoryStore:
    """In-memory key/entry map kept in lockstep with its tag index.

    Not synchronised on its own; ``TagCache`` serialises access.
    """

    def __init__(self, clock: Clock = time.time) -> None:
        self._store: dict[str, CacheEntry] = {}
        self._index = TagIndex()
        self._clock = clock

    def get(self, key: str) -> CacheEntry | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired_at(self._clock()):
            self._remove(key)
            return None
        return entry

    def set(self, entry: CacheEntry) -> None:
        previous = self._store.get(entry.key)
        old_tags = previous.tags if previous is not None else frozenset()
        self._store[entry.key] = entry
        self._index.replace(entry.key, old_tags, entry.tags)

    def delete(self, key: str) -> CacheEntry | None:
        return self._remove(key)

    def clear(self) -> None:
        self._store.clear()
        self._index.clear()

    def keys_for_tag(self, tag: str) -> set[str]:
        return self._index.keys_for(tag)

    def drop_tag(self, tag: str) -> list[CacheEntry]:
        """Remove and return every entry tagged ``tag``, expired ones included."""
        removed: list[CacheEntry] = []
        for key in self._index.keys_for(tag):
            entry = self._remove(key)
            if entry is not None:
                removed.append(entry)
        self._index.discard_tag(tag)
        return removed

    def live_entries(self) -> Iterator[CacheEntry]:
        now = self._clock()
        for entry in list(self._store.values()):
            if not entry.is_expired_at(now):
                yield entry

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._store.items() if e.is_expired_at(now)]
        for key in expired:
            self._remove(key)
        return len(expired)

    def index_snapshot(self) -> dict[str, frozenset[str]]:
        return self._index.snapshot()

    @property
    def tag_count(self) -> int:
        return len(self._index)

    def __contains__(self, key: object) -> bool:
        return key in self._store

    def __len__(self) -> int:
        return len(self._store)

    def _remove(self, key: str) -> CacheEntry | None:
        entry = self._store.pop(key, None)
        if entry is not None:
            self._index.remove(key, entry.tags)
        return entry
