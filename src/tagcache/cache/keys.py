"""Cache key generation — deterministic, settings-normalized, versioned."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping, Sequence
from typing import Any

# (setting name, key label) in the order they appear in a grid key
GRID_KEY_FIELDS: tuple[tuple[str, str], ...] = (
    ("desktop_columns", "cols"),
    ("mobile_columns", "mcols"),
    ("carousel_mobile", "carousel"),
    ("image_size", "size"),
)


def normalize_settings(
    settings: Mapping[str, Any] | None,
    fields: Sequence[tuple[str, str]] | None = None,
) -> list[str]:
    """Render settings as ``label_value`` parts in a fixed order.

    Empty values (``None``, ``0``, ``""``, ``False``, empty containers) are
    dropped, so two settings mappings that differ only in order or in unset
    fields normalize identically. Without ``fields`` every setting is kept,
    labelled by its own name, in sorted name order.
    """
    if not settings:
        return []
    if fields is None:
        fields = [(name, name) for name in sorted(settings)]

    parts: list[str] = []
    for name, label in fields:
        value = settings.get(name)
        if not value:
            continue
        parts.append(f"{label}_{_render(value)}")
    return parts


def build_cache_key(
    kind: str,
    identity: str | int,
    settings: Mapping[str, Any] | None = None,
    version: str | int = "1",
    fields: Sequence[tuple[str, str]] | None = None,
) -> str:
    """Build ``<kind>_<sha256(identity + settings)>_<version>``.

    Bumping ``version`` yields a disjoint key space, which retires every
    previously built key without enumerating them.
    """
    components = [str(identity), *normalize_settings(settings, fields)]
    # JSON keeps component boundaries, so no identity can mimic a setting
    encoded = json.dumps(components, separators=(",", ":"))
    digest = hashlib.sha256(encoded.encode("utf-8")).hexdigest()
    return f"{kind}_{digest}_{version}"


def _render(value: Any) -> str:
    if isinstance(value, bool):
        return "on" if value else "off"
    return str(value)
