"""Ancestor resolution for hierarchical tags (e.g. nested categories)."""

from __future__ import annotations

import logging
from collections.abc import Mapping

logger = logging.getLogger(__name__)


class ParentMapResolver:
    """Resolves ancestors from a ``child -> parent`` mapping.

    Ancestors are returned nearest first, stopping at a root or at the first
    repeated tag if the mapping contains a cycle. Instances are callable so
    they can be passed straight to ``TagCache.invalidate_with_ancestors``.
    """

    def __init__(self, parents: Mapping[str, str | None] | None = None) -> None:
        self._parents: dict[str, str] = {
            child: parent for child, parent in (parents or {}).items() if parent
        }

    def set_parent(self, child: str, parent: str | None) -> None:
        if parent:
            self._parents[child] = parent
        else:
            self._parents.pop(child, None)

    def ancestors(self, tag: str) -> list[str]:
        result: list[str] = []
        seen = {tag}
        current = self._parents.get(tag)
        while current is not None:
            if current in seen:
                logger.warning("Cycle in tag hierarchy at %r", current)
                break
            result.append(current)
            seen.add(current)
            current = self._parents.get(current)
        return result

    def __call__(self, tag: str) -> list[str]:
        return self.ancestors(tag)
