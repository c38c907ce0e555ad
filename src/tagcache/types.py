"""Shared types for tagcache."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Final

Clock = Callable[[], float]
AncestorResolver = Callable[[str], Sequence[str]]


class _Miss:
    """Sentinel returned by lookups that found nothing live."""

    _instance: _Miss | None = None

    def __new__(cls) -> _Miss:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISS"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "MISS"


MISS: Final = _Miss()
