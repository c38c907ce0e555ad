"""Tests for the settings model."""

from pathlib import Path

import pytest

from tagcache.config.schema import CacheSettings
from tagcache.errors.exceptions import ConfigError


class TestCacheSettings:
    def test_defaults(self):
        settings = CacheSettings()
        assert settings.enabled is True
        assert settings.default_ttl == 3600
        assert settings.disk_path is None

    def test_int_version_becomes_string(self):
        assert CacheSettings.from_mapping({"version": 3}).version == "3"

    def test_unknown_keys_ignored(self):
        settings = CacheSettings.from_mapping({"colour": "blue", "grid_ttl": 60})
        assert settings.grid_ttl == 60

    def test_disk_path_as_path(self):
        assert CacheSettings.from_mapping({"disk_path": "/tmp/x.db"}).disk_path == Path("/tmp/x.db")

    def test_invalid_ttl_raises_config_error(self):
        with pytest.raises(ConfigError) as exc_info:
            CacheSettings.from_mapping({"default_ttl": 0})
        assert exc_info.value.key == "default_ttl"

    def test_invalid_type_raises_config_error(self):
        with pytest.raises(ConfigError):
            CacheSettings.from_mapping({"grid_ttl": "soon"})

    def test_log_level_upper_cased(self):
        assert CacheSettings.from_mapping({"log_level": "info"}).log_level == "INFO"

    def test_unknown_log_level_rejected(self):
        with pytest.raises(ConfigError) as exc_info:
            CacheSettings.from_mapping({"log_level": "chatty"})
        assert exc_info.value.key == "log_level"
