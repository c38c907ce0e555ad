"""Custom exception hierarchy for tagcache."""

from __future__ import annotations

from typing import Any


class TagCacheError(Exception):
    """Base exception for all tagcache errors."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message


class BackingStoreUnavailable(TagCacheError):
    """The persistent secondary store could not complete an operation.

    The in-memory tier keeps working; callers decide whether to surface this.
    """

    def __init__(
        self,
        message: str = "",
        operation: str = "",
        key: str | None = None,
        original: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.key = key
        self.original = original


class ConfigError(TagCacheError):
    """Invalid configuration value or file."""

    def __init__(self, message: str = "", key: str | None = None) -> None:
        super().__init__(message)
        self.key = key
