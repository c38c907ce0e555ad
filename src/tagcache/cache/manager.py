"""Tag cache — orchestrates the L1 memory tier, the optional L2 store and invalidation."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

from tagcache.cache.keys import build_cache_key
from tagcache.cache.memory import MemoryStore
from tagcache.cache.stats import CacheEntry, CacheStats
from tagcache.errors.exceptions import BackingStoreUnavailable
from tagcache.types import MISS, AncestorResolver, Clock

logger = logging.getLogger(__name__)

T = TypeVar("T")

_DEFAULT_TTL = 3600.0


class BackingStore(Protocol):
    """Persistent secondary tier. Failures raise ``BackingStoreUnavailable``."""

    def get(self, key: str) -> CacheEntry | None: ...

    def set(self, entry: CacheEntry) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


@runtime_checkable
class TagAwareStore(Protocol):
    """A backing store that can also list the keys carrying a tag."""

    def keys_for_tag(self, tag: str) -> list[str]: ...


class TagCache:
    """Two-tier cache with tag-indexed invalidation.

    L1 is an in-memory store whose tag index is updated under the same lock
    as the entries, so readers never see a half-applied write. L2 is an
    optional persistent store consulted on L1 misses and written through on
    every ``set``; it is called outside that lock. Mutations also hold a
    separate write lock across both tiers, so a write-through cannot land
    after a concurrent delete or invalidation of the same key. When L2 fails
    the cache logs, counts the error and keeps serving from memory only until
    ``restore_backing()`` empties it and switches it back on.
    """

    def __init__(
        self,
        backing: BackingStore | None = None,
        clock: Clock = time.time,
        version: str | int = "1",
        enabled: bool = True,
        default_ttl: float = _DEFAULT_TTL,
        raise_backing_errors: bool = False,
    ) -> None:
        self._clock = clock
        self._l1 = MemoryStore(clock=clock)
        self._l2 = backing
        self._version = version
        self._enabled = enabled
        self._default_ttl = default_ttl
        self._raise_backing_errors = raise_backing_errors
        self._lock = threading.RLock()
        # Held across L1 and L2 by writers only; always taken before _lock.
        self._write_lock = threading.RLock()
        self._stats = CacheStats()
        self._degraded = False
        # Bumped on every mutation so a slow L2 read cannot resurrect a
        # value that was replaced or invalidated meanwhile.
        self._generation = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def degraded(self) -> bool:
        return self._degraded

    @property
    def version(self) -> str | int:
        return self._version

    @version.setter
    def version(self, value: str | int) -> None:
        self._version = value

    def bump_version(self) -> str | int:
        """Advance the key version; keys built before the bump are never read again."""
        current = self._version
        if isinstance(current, int):
            self._version = current + 1
        elif current.isdigit():
            self._version = str(int(current) + 1)
        else:
            self._version = f"{current}.1"
        logger.info("Cache version bumped %s -> %s", current, self._version)
        return self._version

    def build_key(
        self,
        kind: str,
        identity: str | int,
        settings: Mapping[str, Any] | None = None,
        fields: Sequence[tuple[str, str]] | None = None,
    ) -> str:
        return build_cache_key(kind, identity, settings, version=self._version, fields=fields)

    # ── Store operations ──

    def get(self, key: str) -> Any:
        """Return the live value for ``key`` or ``MISS``. Never raises for absence."""
        if not self._enabled:
            with self._lock:
                self._stats.misses += 1
            return MISS

        with self._lock:
            entry = self._l1.get(key)
            if entry is not None:
                self._stats.hits += 1
                return entry.value
            generation = self._generation

        entry = self._backing_call("get", key)
        with self._lock:
            if entry is None or entry.is_expired_at(self._clock()):
                self._stats.misses += 1
                return MISS
            if generation == self._generation:
                self._l1.set(entry)
            self._stats.hits += 1
            return entry.value

    def set(
        self,
        key: str,
        value: Any,
        ttl: float | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        """Insert or replace ``key``; tag memberships follow the new ``tags``."""
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        if not self._enabled:
            return

        now = self._clock()
        entry = CacheEntry(key=key, value=value, created_at=now, expires_at=now + ttl, tags=tags)
        with self._write_lock:
            with self._lock:
                self._l1.set(entry)
                self._generation += 1
            self._write_through(entry)

    def get_or_set(
        self,
        key: str,
        populate: Callable[[], T | None],
        ttl: float | None = None,
        tags: Iterable[str] = (),
    ) -> T | None:
        """Fetch ``key`` or compute it with ``populate``. ``None`` results are not cached."""
        value = self.get(key)
        if value is not MISS:
            return value
        value = populate()
        if value is not None:
            self.set(key, value, ttl=ttl, tags=tags)
        return value

    def delete(self, key: str) -> None:
        with self._write_lock:
            with self._lock:
                self._l1.delete(key)
                self._generation += 1
            self._backing_call("delete", key)

    def flush_all(self) -> None:
        with self._write_lock:
            with self._lock:
                self._l1.clear()
                self._generation += 1
            self._backing_call("clear")
        logger.info("Cache flushed")

    def purge_expired(self) -> int:
        with self._lock:
            return self._l1.purge_expired()

    # ── Invalidation ──

    def invalidate_tag(self, tag: str) -> int:
        """Delete every entry tagged ``tag``.

        Returns the number of live L1 entries removed; entries that had
        already expired are cleaned up without being counted. L2 entries
        carrying the tag are removed as well when the store can list them.
        """
        with self._write_lock:
            with self._lock:
                removed = self._l1.drop_tag(tag)
                self._generation += 1
                now = self._clock()
                count = sum(1 for e in removed if not e.is_expired_at(now))
                self._stats.invalidations += count

            stale_keys = {e.key for e in removed}
            if isinstance(self._l2, TagAwareStore):
                stale_keys.update(self._backing_call("keys_for_tag", tag) or ())
            for key in sorted(stale_keys):
                self._backing_call("delete", key)

        if count:
            logger.debug("Invalidated %d entries tagged %r", count, tag)
        return count

    def invalidate_with_ancestors(self, tag: str, resolve_ancestors: AncestorResolver) -> int:
        """Invalidate ``tag`` then each ancestor, in the order the resolver returns them."""
        ancestors = list(resolve_ancestors(tag))
        seen = {tag}
        total = self.invalidate_tag(tag)
        for ancestor in ancestors:
            if ancestor in seen:
                continue
            seen.add(ancestor)
            total += self.invalidate_tag(ancestor)
        return total

    def invalidate_by_predicate(self, predicate: Callable[[Any], bool]) -> int:
        """Delete every live L1 entry whose value satisfies ``predicate``.

        This walks all entries, so it is O(n) in the cache size and only
        suitable while the cache stays small. Prefer tags for anything that
        can be expressed as a dependency. L2-only entries are not scanned.
        """
        with self._write_lock:
            with self._lock:
                entries = list(self._l1.live_entries())
                matched = [e.key for e in entries if predicate(e.value)]
                for key in matched:
                    self._l1.delete(key)
                self._generation += 1
                self._stats.invalidations += len(matched)

            logger.debug("Predicate scan over %d entries matched %d", len(entries), len(matched))
            for key in matched:
                self._backing_call("delete", key)
        return len(matched)

    # ── Introspection ──

    def stats(self) -> CacheStats:
        with self._lock:
            return self._stats.model_copy(
                update={
                    "entries": len(self._l1),
                    "tags": self._l1.tag_count,
                    "degraded": self._degraded,
                }
            )

    def index_snapshot(self) -> dict[str, frozenset[str]]:
        with self._lock:
            return self._l1.index_snapshot()

    def live_keys_by_tag(self) -> dict[str, frozenset[str]]:
        """Recompute tag membership from live entries (the index must agree)."""
        result: dict[str, set[str]] = {}
        with self._lock:
            for entry in self._l1.live_entries():
                for tag in entry.tags:
                    result.setdefault(tag, set()).add(entry.key)
        return {tag: frozenset(keys) for tag, keys in result.items()}

    def restore_backing(self) -> bool:
        """Empty the backing store and switch it back on.

        While degraded, deletes and invalidations never reached L2, so any
        row it still holds may be stale. Returns ``False`` and stays degraded
        when the store cannot be cleared.
        """
        if self._l2 is None:
            return True
        with self._write_lock:
            try:
                self._l2.clear()
            except BackingStoreUnavailable as e:
                self._record_backing_error("clear", e)
                return False
            with self._lock:
                self._degraded = False
        logger.info("Backing store cleared and re-enabled")
        return True

    def close(self) -> None:
        close = getattr(self._l2, "close", None)
        if close is not None:
            close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._l1)

    # ── Backing store plumbing ──

    def _write_through(self, entry: CacheEntry) -> None:
        try:
            self._backing_call("set", entry)
        except ValueError as e:
            logger.debug("Not persisting %s: %s", entry.key, e)
            # An older row for the key would outlive the new L1 entry.
            self._backing_call("delete", entry.key)

    def _backing_call(self, operation: str, *args: Any) -> Any:
        if self._l2 is None or self._degraded:
            return None
        try:
            return getattr(self._l2, operation)(*args)
        except BackingStoreUnavailable as e:
            self._record_backing_error(operation, e)
            return None

    def _record_backing_error(self, operation: str, error: BackingStoreUnavailable) -> None:
        with self._lock:
            self._stats.backing_errors += 1
            self._degraded = True
        logger.warning(
            "Backing store %s failed, continuing without persistence: %s", operation, error
        )
        if self._raise_backing_errors:
            raise error
