"""Tests for the cache factory functions."""

import pytest

from tagcache.core import create_cache, create_grid_cache, load_settings
from tagcache.errors.exceptions import BackingStoreUnavailable, ConfigError
from tagcache.grids import GridCache
from tagcache.types import MISS


class TestLoadSettings:
    def test_overrides(self):
        settings = load_settings(version="8", grid_ttl=60)
        assert settings.version == "8"
        assert settings.grid_ttl == 60

    def test_invalid_value(self):
        with pytest.raises(ConfigError):
            load_settings(default_ttl=-5)


class TestCreateCache:
    def test_with_disk(self, tmp_path, clock):
        db_path = tmp_path / "c.db"
        cache = create_cache(disk_path=db_path, clock=clock)
        try:
            cache.set("k", "v", ttl=10, tags=["a"])
        finally:
            cache.close()

        reopened = create_cache(disk_path=db_path, clock=clock)
        try:
            assert reopened.get("k") == "v"
        finally:
            reopened.close()

    def test_memory_only(self, clock):
        cache = create_cache(disk_enabled=False, clock=clock)
        cache.set("k", "v", ttl=10)
        assert cache.get("k") == "v"
        assert cache.stats().backing_errors == 0

    def test_version_from_env(self, monkeypatch, clock):
        monkeypatch.setenv("TAGCACHE_VERSION", "12")
        cache = create_cache(disk_enabled=False, clock=clock)
        assert cache.version == "12"

    def test_disabled(self, clock):
        cache = create_cache(enabled=False, clock=clock)
        cache.set("k", "v", ttl=10)
        assert cache.get("k") is MISS

    def test_unopenable_disk_falls_back_to_memory(self, tmp_path, clock):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        cache = create_cache(disk_path=blocker / "c.db", clock=clock)
        cache.set("k", "v", ttl=10)
        assert cache.get("k") == "v"

    def test_unopenable_disk_raises_when_strict(self, tmp_path, clock):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        with pytest.raises(BackingStoreUnavailable):
            create_cache(disk_path=blocker / "c.db", raise_backing_errors=True, clock=clock)


class TestCreateGridCache:
    def test_uses_configured_ttls(self, grid_repository, clock):
        grids = create_grid_cache(grid_repository, disk_enabled=False, grid_ttl=5, clock=clock)
        assert isinstance(grids, GridCache)
        grids.get_grid("home")
        clock.advance(5)
        grids.get_grid("home")
        assert grid_repository.calls == ["home", "home"]
