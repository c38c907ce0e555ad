"""Tag index — tag to set-of-keys mapping used for bulk invalidation."""

from __future__ import annotations

from collections.abc import Iterable


class TagIndex:
    """Reverse index from tag to the keys currently tagged with it.

    Empty tag sets are pruned as soon as their last key leaves.
    """

    def __init__(self) -> None:
        self._index: dict[str, set[str]] = {}

    def add(self, key: str, tags: Iterable[str]) -> None:
        for tag in tags:
            self._index.setdefault(tag, set()).add(key)

    def remove(self, key: str, tags: Iterable[str]) -> None:
        for tag in tags:
            keys = self._index.get(tag)
            if keys is None:
                continue
            keys.discard(key)
            if not keys:
                del self._index[tag]

    def replace(self, key: str, old_tags: Iterable[str], new_tags: Iterable[str]) -> None:
        """Move ``key`` from ``old_tags`` to ``new_tags``, touching only the difference."""
        old = set(old_tags)
        new = set(new_tags)
        self.remove(key, old - new)
        self.add(key, new - old)

    def keys_for(self, tag: str) -> set[str]:
        return set(self._index.get(tag, ()))

    def discard_tag(self, tag: str) -> None:
        self._index.pop(tag, None)

    def clear(self) -> None:
        self._index.clear()

    def tags(self) -> list[str]:
        return list(self._index)

    def snapshot(self) -> dict[str, frozenset[str]]:
        return {tag: frozenset(keys) for tag, keys in self._index.items()}

    def __contains__(self, tag: object) -> bool:
        return tag in self._index

    def __len__(self) -> int:
        return len(self._index)
