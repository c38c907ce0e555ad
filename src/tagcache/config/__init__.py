"""Configuration — defaults, layered YAML/env loading and validation."""

from tagcache.config.hierarchy import load_config_hierarchy
from tagcache.config.schema import CacheSettings

__all__ = ["CacheSettings", "load_config_hierarchy"]
