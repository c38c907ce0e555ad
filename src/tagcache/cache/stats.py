"""Cache entry and statistics models."""

from __future__ import annotations

import json
import time
from typing import Any

from pydantic import BaseModel, Field, field_validator


class CacheEntry(BaseModel):
    """A cached value with absolute expiry and the tags it depends on."""

    key: str
    value: Any = None
    created_at: float = Field(default_factory=time.time)
    expires_at: float
    tags: frozenset[str] = Field(default_factory=frozenset)

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset({value})
        return frozenset(str(t) for t in value)

    def is_expired_at(self, now: float) -> bool:
        return now >= self.expires_at

    @property
    def is_expired(self) -> bool:
        return self.is_expired_at(time.time())

    def remaining_ttl(self, now: float) -> float:
        return max(0.0, self.expires_at - now)

    @property
    def size_bytes(self) -> int:
        if isinstance(self.value, bytes):
            return len(self.value)
        return len(json.dumps(self.value, default=str).encode("utf-8"))


class CacheStats(BaseModel):
    """Aggregate cache statistics."""

    entries: int = 0
    tags: int = 0
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    backing_errors: int = 0
    degraded: bool = False

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0
