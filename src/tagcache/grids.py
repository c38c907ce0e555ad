"""Grid cache — category-grid records and rendered output on top of TagCache."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from tagcache.cache.keys import GRID_KEY_FIELDS, build_cache_key
from tagcache.cache.manager import TagCache

logger = logging.getLogger(__name__)

T = TypeVar("T")

GRID_TTL = 30 * 60
OUTPUT_TTL = 60 * 60

THUMBNAIL_META_KEY = "thumbnail_id"

OUTPUT_DEFAULTS: dict[str, Any] = {
    "desktop_columns": 3,
    "mobile_columns": 2,
    "carousel_mobile": False,
    "image_size": "medium",
}

OUTPUT_KEY_FIELDS: tuple[tuple[str, str], ...] = (
    ("language", "lang"),
    ("role", "role"),
    *GRID_KEY_FIELDS,
)

# Marks grid records among other cached values
_GRID_RECORD = "grid"


class GridCategory(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: int | str


class Grid(BaseModel):
    grid_id: int
    slug: str
    name: str = ""
    categories: list[GridCategory] = Field(default_factory=list)
    settings: dict[str, Any] = Field(default_factory=dict)

    @property
    def category_ids(self) -> list[int | str]:
        return [c.id for c in self.categories]

    def contains_term(self, term_id: int | str) -> bool:
        return any(str(c.id) == str(term_id) for c in self.categories)


class GridRepository(Protocol):
    """Source of truth for grid definitions."""

    def get_grid(self, slug: str) -> Grid | None: ...

    def get_grid_by_id(self, grid_id: int) -> Grid | None: ...


def grid_tag(slug: str) -> str:
    return f"grid:{slug}"


def term_tag(term_id: int | str) -> str:
    return f"term:{term_id}"


def product_tag(product_id: int | str) -> str:
    return f"product:{product_id}"


class GridCache:
    """Caches grid records and rendered grid HTML, and clears them on change.

    Grid records are tagged with their grid; rendered output additionally
    carries one tag per category it displays, so a category change reaches
    every page that shows it.
    """

    def __init__(
        self,
        cache: TagCache,
        repository: GridRepository,
        resolve_ancestors: Callable[[int | str], Sequence[int | str]] | None = None,
        grid_ttl: float = GRID_TTL,
        output_ttl: float = OUTPUT_TTL,
    ) -> None:
        self._cache = cache
        self._repository = repository
        self._resolve_ancestors = resolve_ancestors
        self._grid_ttl = grid_ttl
        self._output_ttl = output_ttl

    @property
    def cache(self) -> TagCache:
        return self._cache

    # ── Keys ──

    def grid_key(self, slug: str, settings: Mapping[str, Any] | None = None) -> str:
        return build_cache_key(
            "grid", slug, settings, version=self._cache.version, fields=GRID_KEY_FIELDS
        )

    def output_key(
        self,
        slug: str,
        settings: Mapping[str, Any] | None = None,
        language: str | None = None,
        roles: Sequence[str] | None = None,
    ) -> str:
        """Key for rendered output; unset display options fall back to defaults."""
        resolved = dict(OUTPUT_DEFAULTS)
        resolved.update({k: v for k, v in (settings or {}).items() if v is not None})
        resolved["language"] = language or "default"
        resolved["role"] = ",".join(roles) if roles else "guest"
        return build_cache_key(
            "output", slug, resolved, version=self._cache.version, fields=OUTPUT_KEY_FIELDS
        )

    def term_key(self, term_id: int | str) -> str:
        return build_cache_key("term", term_id, version=self._cache.version)

    def product_key(self, product_id: int | str) -> str:
        return build_cache_key("product", product_id, version=self._cache.version)

    # ── Reads ──

    def get_grid(self, slug: str, settings: Mapping[str, Any] | None = None) -> Grid | None:
        """Return the grid, loading it from the repository on a miss."""
        record = self._cache.get_or_set(
            self.grid_key(slug, settings),
            lambda: self._load_grid(slug),
            ttl=self._grid_ttl,
            tags=[grid_tag(slug)],
        )
        if record is None:
            return None
        return Grid.model_validate({k: v for k, v in record.items() if k != "_kind"})

    def get_grid_output(
        self,
        slug: str,
        settings: Mapping[str, Any] | None = None,
        language: str | None = None,
        roles: Sequence[str] | None = None,
    ) -> str | None:
        value = self._cache.get(self.output_key(slug, settings, language, roles))
        return value if isinstance(value, str) else None

    def cache_grid_output(
        self,
        slug: str,
        settings: Mapping[str, Any] | None,
        html: str,
        category_ids: Sequence[int | str] | None = None,
        language: str | None = None,
        roles: Sequence[str] | None = None,
    ) -> str:
        """Store rendered HTML tagged with its grid and each category it shows.

        Without ``category_ids`` the categories come from the grid definition.
        """
        if category_ids is None:
            grid = self.get_grid(slug)
            category_ids = grid.category_ids if grid is not None else ()
        key = self.output_key(slug, settings, language, roles)
        tags = [grid_tag(slug), *(term_tag(c) for c in category_ids)]
        self._cache.set(key, html, ttl=self._output_ttl, tags=tags)
        return key

    def get_term(self, term_id: int | str, populate: Callable[[], T | None]) -> T | None:
        return self._cache.get_or_set(
            self.term_key(term_id), populate, ttl=self._output_ttl, tags=[term_tag(term_id)]
        )

    def get_product(self, product_id: int | str, populate: Callable[[], T | None]) -> T | None:
        return self._cache.get_or_set(
            self.product_key(product_id),
            populate,
            ttl=self._output_ttl,
            tags=[product_tag(product_id)],
        )

    # ── Invalidation ──

    def clear_grid_cache(self, identifier: int | str) -> int:
        """Clear every cached variant of one grid. Numeric ids are resolved to slugs."""
        slug = str(identifier)
        if isinstance(identifier, int) or slug.isdigit():
            grid = self._repository.get_grid_by_id(int(identifier))
            if grid is not None:
                slug = grid.slug
        count = self._cache.invalidate_tag(grid_tag(slug))
        logger.debug("Cleared grid %r (%d entries)", slug, count)
        return count

    def clear_term_cache(self, term_id: int | str) -> int:
        """Clear a category, its ancestors, and every grid that lists it."""
        if self._resolve_ancestors is not None:
            resolver = self._resolve_ancestors

            def ancestors(_tag: str) -> list[str]:
                return [term_tag(a) for a in resolver(term_id)]

            count = self._cache.invalidate_with_ancestors(term_tag(term_id), ancestors)
        else:
            count = self._cache.invalidate_tag(term_tag(term_id))
        return count + self.clear_grids_with_term(term_id)

    def clear_grids_with_term(self, term_id: int | str) -> int:
        """Clear every cached grid whose category list contains ``term_id``.

        Scans every cached value for grid records, so cost grows with the
        cache. Each matching grid is then cleared through its tag, which also
        drops its rendered output.
        """
        slugs: set[str] = set()

        def lists_term(value: Any) -> bool:
            if not isinstance(value, dict) or value.get("_kind") != _GRID_RECORD:
                return False
            matched = any(
                isinstance(c, dict) and str(c.get("id")) == str(term_id)
                for c in value.get("categories") or ()
            )
            if matched:
                slugs.add(str(value.get("slug")))
            return matched

        count = self._cache.invalidate_by_predicate(lists_term)
        for slug in sorted(slugs):
            count += self._cache.invalidate_tag(grid_tag(slug))
        return count

    def handle_term_meta_update(self, term_id: int | str, meta_key: str) -> int:
        if meta_key != THUMBNAIL_META_KEY:
            return 0
        return self.clear_term_cache(term_id)

    def clear_product_cache(
        self, product_id: int | str, category_ids: Sequence[int | str] = ()
    ) -> int:
        count = sum(self.clear_term_cache(c) for c in category_ids)
        count += self._cache.invalidate_tag(product_tag(product_id))
        self._cache.delete(self.product_key(product_id))
        return count

    def clear_all_cache(self) -> None:
        self._cache.flush_all()

    def _load_grid(self, slug: str) -> dict[str, Any] | None:
        grid = self._repository.get_grid(slug)
        if grid is None:
            logger.debug("Grid %r not found", slug)
            return None
        return {"_kind": _GRID_RECORD, **grid.model_dump(mode="json")}
