"""Layered configuration for tagcache.

Layers, lowest precedence first: package defaults, ``~/.tagcache/config.yaml``,
the nearest ``tagcache.yaml`` at or above the working directory, ``TAGCACHE_*``
environment variables, then runtime overrides. Values are merged raw; typing
is left to ``CacheSettings``, so ``TAGCACHE_DISK_ENABLED=off`` is validated
the same way as ``disk_enabled: off`` in YAML.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from tagcache.config.defaults import get_defaults
from tagcache.config.schema import CacheSettings

logger = logging.getLogger(__name__)

ENV_PREFIX = "TAGCACHE_"
PROJECT_FILE = "tagcache.yaml"

_GLOBAL_CONFIG_PATH = Path.home() / ".tagcache" / "config.yaml"


def load_config_hierarchy(**runtime_overrides: Any) -> dict[str, Any]:
    """Merge every layer into one flat dict. ``None`` overrides are skipped."""
    layers: list[Mapping[str, Any]] = [get_defaults()]
    layers.extend(read_config_file(path) for path in config_files())
    layers.append(env_overrides())
    layers.append({k: v for k, v in runtime_overrides.items() if v is not None})

    merged: dict[str, Any] = {}
    for layer in layers:
        merged.update(layer)
    return merged


def config_files() -> list[Path]:
    """Config files that exist, global before project."""
    candidates = [_GLOBAL_CONFIG_PATH, find_project_file(Path.cwd())]
    return [path for path in candidates if path is not None and path.is_file()]


def find_project_file(start: Path) -> Path | None:
    for directory in (start, *start.parents):
        candidate = directory / PROJECT_FILE
        if candidate.is_file():
            return candidate
    return None


def read_config_file(path: Path) -> dict[str, Any]:
    """Settings from one YAML file.

    A file that cannot be read or parsed, or whose top level is not a
    mapping, contributes nothing. Keys that are not settings are dropped
    with a warning.
    """
    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Skipping config %s: %s", path, e)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Skipping config %s: top level is not a mapping", path)
        return {}

    known = CacheSettings.model_fields
    unknown = sorted(str(k) for k in data if k not in known)
    if unknown:
        logger.warning("Ignoring unknown settings in %s: %s", path, ", ".join(unknown))
    return {k: v for k, v in data.items() if k in known}


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """``TAGCACHE_<SETTING>`` variables for every settings field. Empty values are unset."""
    environ = os.environ if environ is None else environ
    result: dict[str, str] = {}
    for name in CacheSettings.model_fields:
        value = environ.get(ENV_PREFIX + name.upper())
        if value:
            result[name] = value
    return result
