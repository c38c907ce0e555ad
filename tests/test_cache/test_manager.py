"""Tests for TagCache store operations and the two-tier read path."""

import pytest

from tagcache.cache.disk import DiskStore
from tagcache.cache.manager import TagCache
from tagcache.errors.exceptions import BackingStoreUnavailable
from tagcache.types import MISS


class FailingStore:
    """Backing store whose every call fails."""

    def __init__(self) -> None:
        self.calls = 0

    def _fail(self, *args):
        self.calls += 1
        raise BackingStoreUnavailable("down", operation="test")

    get = set = delete = clear = _fail


class FlakyDeleteStore(DiskStore):
    """SQLite store whose first ``delete`` fails."""

    failures = 1

    def delete(self, key: str) -> None:
        if self.failures:
            self.failures -= 1
            raise BackingStoreUnavailable("locked out", operation="delete", key=key)
        super().delete(key)


class TestStoreOperations:
    def test_set_then_get(self, clock):
        cache = TagCache(clock=clock)
        cache.set("grid_abc", "<html>", ttl=1800, tags={"cat_5", "cat_9"})
        assert cache.get("grid_abc") == "<html>"

    def test_miss_is_sentinel(self, clock):
        cache = TagCache(clock=clock)
        assert cache.get("nope") is MISS
        assert not MISS

    def test_falsy_values_are_hits(self, clock):
        cache = TagCache(clock=clock)
        cache.set("k", 0, ttl=10)
        assert cache.get("k") == 0
        assert cache.get("k") is not MISS

    def test_expiry_is_lazy(self, clock):
        cache = TagCache(clock=clock)
        cache.set("k", "v", ttl=30, tags=["a"])
        clock.advance(29)
        assert cache.get("k") == "v"
        clock.advance(1)
        assert cache.get("k") is MISS
        assert cache.index_snapshot() == {}

    def test_default_ttl(self, clock):
        cache = TagCache(clock=clock, default_ttl=5)
        cache.set("k", "v")
        clock.advance(5)
        assert cache.get("k") is MISS

    @pytest.mark.parametrize("ttl", [0, -1])
    def test_non_positive_ttl_rejected(self, clock, ttl):
        with pytest.raises(ValueError):
            TagCache(clock=clock).set("k", "v", ttl=ttl)

    def test_overwrite_replaces_tags(self, clock):
        cache = TagCache(clock=clock)
        cache.set("k", "v1", ttl=10, tags=["a", "b"])
        cache.set("k", "v2", ttl=10, tags=["c"])
        assert cache.get("k") == "v2"
        assert cache.index_snapshot() == {"c": frozenset({"k"})}

    def test_delete_is_idempotent(self, clock):
        cache = TagCache(clock=clock)
        cache.set("k", "v", ttl=10, tags=["a"])
        cache.delete("k")
        cache.delete("k")
        assert cache.get("k") is MISS
        assert cache.index_snapshot() == {}

    def test_flush_all_is_idempotent(self, clock):
        cache = TagCache(clock=clock)
        cache.set("k1", "v", ttl=10, tags=["a"])
        cache.set("k2", "v", ttl=10, tags=["b"])
        cache.flush_all()
        cache.flush_all()
        assert len(cache) == 0
        assert cache.index_snapshot() == {}

    def test_purge_expired(self, clock):
        cache = TagCache(clock=clock)
        cache.set("k1", "v", ttl=5)
        cache.set("k2", "v", ttl=50)
        clock.advance(10)
        assert cache.purge_expired() == 1
        assert len(cache) == 1


class TestGetOrSet:
    def test_populates_once(self, clock):
        cache = TagCache(clock=clock)
        calls = []

        def populate():
            calls.append(1)
            return "value"

        assert cache.get_or_set("k", populate, ttl=10, tags=["a"]) == "value"
        assert cache.get_or_set("k", populate, ttl=10, tags=["a"]) == "value"
        assert len(calls) == 1
        assert cache.index_snapshot() == {"a": frozenset({"k"})}

    def test_none_is_not_cached(self, clock):
        cache = TagCache(clock=clock)
        calls = []

        def populate():
            calls.append(1)
            return None

        assert cache.get_or_set("k", populate) is None
        assert cache.get_or_set("k", populate) is None
        assert len(calls) == 2


class TestVersioning:
    def test_build_key_embeds_version(self, clock):
        cache = TagCache(clock=clock, version="3")
        assert cache.build_key("grid", "home").endswith("_3")

    def test_bump_version_retires_old_keys(self, clock):
        cache = TagCache(clock=clock)
        old_key = cache.build_key("grid", "home")
        cache.set(old_key, "v", ttl=10)
        assert cache.bump_version() == "2"
        new_key = cache.build_key("grid", "home")
        assert new_key != old_key
        assert cache.get(new_key) is MISS

    @pytest.mark.parametrize(
        ("current", "expected"), [(1, 2), ("9", "10"), ("beta", "beta.1")]
    )
    def test_bump_version_values(self, clock, current, expected):
        cache = TagCache(clock=clock, version=current)
        assert cache.bump_version() == expected
        assert cache.version == expected


class TestDisabledCache:
    def test_get_always_misses(self, clock):
        cache = TagCache(clock=clock, enabled=False)
        cache.set("k", "v", ttl=10)
        assert cache.get("k") is MISS
        assert len(cache) == 0

    def test_get_or_set_still_returns_value(self, clock):
        cache = TagCache(clock=clock, enabled=False)
        assert cache.get_or_set("k", lambda: "fresh") == "fresh"
        assert cache.stats().misses == 1


class TestStats:
    def test_hits_and_misses(self, clock):
        cache = TagCache(clock=clock)
        cache.set("k1", "v", ttl=10, tags=["a", "b"])
        cache.get("k1")
        cache.get("k1")
        cache.get("k2")
        stats = cache.stats()
        assert stats.hits == 2
        assert stats.misses == 1
        assert stats.entries == 1
        assert stats.tags == 2
        assert stats.hit_rate == pytest.approx(2 / 3)

    def test_hit_rate_without_traffic(self, clock):
        assert TagCache(clock=clock).stats().hit_rate == 0.0


class TestBackingStore:
    def test_write_through_and_promotion(self, tmp_path, clock):
        db_path = tmp_path / "cache.db"
        first = TagCache(backing=DiskStore(db_path, clock=clock), clock=clock)
        first.set("k", {"html": "<p>"}, ttl=100, tags=["a"])
        first.close()

        second = TagCache(backing=DiskStore(db_path, clock=clock), clock=clock)
        try:
            assert len(second) == 0
            assert second.get("k") == {"html": "<p>"}
            assert len(second) == 1
            assert second.index_snapshot() == {"a": frozenset({"k"})}
        finally:
            second.close()

    def test_promoted_entry_keeps_remaining_lifetime(self, tmp_path, clock):
        db_path = tmp_path / "cache.db"
        first = TagCache(backing=DiskStore(db_path, clock=clock), clock=clock)
        first.set("k", "v", ttl=100)
        first.close()

        clock.advance(60)
        second = TagCache(backing=DiskStore(db_path, clock=clock), clock=clock)
        try:
            assert second.get("k") == "v"
            clock.advance(40)
            assert second.get("k") is MISS
        finally:
            second.close()

    def test_tag_invalidation_reaches_backing_only_entries(self, tmp_path, clock):
        db_path = tmp_path / "cache.db"
        first = TagCache(backing=DiskStore(db_path, clock=clock), clock=clock)
        first.set("k", "v", ttl=100, tags=["a"])
        first.close()

        second = TagCache(backing=DiskStore(db_path, clock=clock), clock=clock)
        try:
            second.invalidate_tag("a")
            assert second.get("k") is MISS
        finally:
            second.close()

    def test_flush_all_clears_backing(self, tmp_path, clock):
        store = DiskStore(tmp_path / "cache.db", clock=clock)
        cache = TagCache(backing=store, clock=clock)
        try:
            cache.set("k", "v", ttl=10)
            cache.flush_all()
            assert store.entry_count == 0
        finally:
            cache.close()

    def test_unserializable_value_kept_in_memory(self, tmp_path, clock):
        store = DiskStore(tmp_path / "cache.db", clock=clock)
        cache = TagCache(backing=store, clock=clock)
        try:
            marker = object()
            cache.set("k", marker, ttl=10)
            assert cache.get("k") is marker
            assert store.entry_count == 0
            assert cache.degraded is False
        finally:
            cache.close()

    def test_failure_degrades_to_memory(self, clock):
        backing = FailingStore()
        cache = TagCache(backing=backing, clock=clock)
        cache.set("k", "v", ttl=10)
        assert cache.get("k") == "v"
        assert cache.get("other") is MISS
        stats = cache.stats()
        assert stats.backing_errors == 1
        assert stats.degraded is True
        assert backing.calls == 1

    def test_unserializable_value_drops_older_row(self, tmp_path, clock):
        store = DiskStore(tmp_path / "cache.db", clock=clock)
        cache = TagCache(backing=store, clock=clock)
        try:
            cache.set("k", "old", ttl=100)
            cache.set("k", object(), ttl=1)
            assert store.entry_count == 0
            clock.advance(2)
            assert cache.get("k") is MISS
        finally:
            cache.close()

    def test_restore_backing_clears_rows_missed_while_degraded(self, tmp_path, clock):
        store = FlakyDeleteStore(tmp_path / "cache.db", clock=clock)
        cache = TagCache(backing=store, clock=clock)
        try:
            cache.set("k", "old", ttl=100)
            cache.delete("k")
            assert cache.degraded is True

            assert cache.restore_backing() is True
            assert cache.degraded is False
            assert cache.get("k") is MISS
            assert store.entry_count == 0
        finally:
            cache.close()

    def test_restore_backing_stays_degraded_when_clear_fails(self, clock):
        backing = FailingStore()
        cache = TagCache(backing=backing, clock=clock)
        cache.set("k", "v", ttl=10)
        assert cache.restore_backing() is False
        assert backing.calls == 2
        assert cache.degraded is True
        cache.delete("k")
        assert backing.calls == 2

    def test_restore_backing_without_store(self, clock):
        assert TagCache(clock=clock).restore_backing() is True

    def test_raise_backing_errors(self, clock):
        cache = TagCache(backing=FailingStore(), clock=clock, raise_backing_errors=True)
        with pytest.raises(BackingStoreUnavailable):
            cache.set("k", "v", ttl=10)
        # Memory tier was updated before the error surfaced
        assert cache.get("k") == "v"
