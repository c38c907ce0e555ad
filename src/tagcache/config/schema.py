"""Pydantic model for resolved cache configuration."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tagcache.errors.exceptions import ConfigError


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="ignore")

    enabled: bool = True
    version: str = "1"
    default_ttl: float = Field(default=3600, gt=0)
    grid_ttl: float = Field(default=1800, gt=0)
    disk_enabled: bool = True
    disk_path: Path | None = None
    raise_backing_errors: bool = False
    log_level: str = "WARNING"

    @field_validator("version", mode="before")
    @classmethod
    def _version_as_str(cls, value: Any) -> Any:
        return str(value) if isinstance(value, int) else value

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        name = value.upper()
        if name not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level {value!r}")
        return name

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> CacheSettings:
        """Validate a merged config dict, reporting the first bad key."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(p) for p in first["loc"]) or None
            raise ConfigError(f"Invalid config value for '{key}': {first['msg']}", key=key) from e
