"""Package-level default configuration values."""

from __future__ import annotations

from typing import Any

# Default cache settings
DEFAULT_ENABLED = True
DEFAULT_VERSION = "1"
DEFAULT_TTL = 60 * 60
DEFAULT_GRID_TTL = 30 * 60

# Default persistence settings
DEFAULT_DISK_ENABLED = True
DEFAULT_RAISE_BACKING_ERRORS = False

# Log level
DEFAULT_LOG_LEVEL = "WARNING"


def get_defaults() -> dict[str, Any]:
    """Return all defaults as a flat dictionary for merging."""
    return {
        "enabled": DEFAULT_ENABLED,
        "version": DEFAULT_VERSION,
        "default_ttl": DEFAULT_TTL,
        "grid_ttl": DEFAULT_GRID_TTL,
        "disk_enabled": DEFAULT_DISK_ENABLED,
        "disk_path": None,
        "raise_backing_errors": DEFAULT_RAISE_BACKING_ERRORS,
        "log_level": DEFAULT_LOG_LEVEL,
    }
