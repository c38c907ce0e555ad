import pytest

from tagcache.grids import Grid


class FakeClock:
    """Manually advanced clock for expiry tests."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryGridRepository:
    def __init__(self, grids: list[Grid]) -> None:
        self._grids = {g.slug: g for g in grids}
        self.calls: list[str] = []

    def get_grid(self, slug: str) -> Grid | None:
        self.calls.append(slug)
        return self._grids.get(slug)

    def get_grid_by_id(self, grid_id: int) -> Grid | None:
        for grid in self._grids.values():
            if grid.grid_id == grid_id:
                return grid
        return None


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep user config files and TAGCACHE_* variables out of every test."""
    import os

    monkeypatch.setattr(
        "tagcache.config.hierarchy._GLOBAL_CONFIG_PATH", tmp_path / "global" / "config.yaml"
    )
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    for name in list(os.environ):
        if name.startswith("TAGCACHE_"):
            monkeypatch.delenv(name)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def grid_repository():
    return InMemoryGridRepository(
        [
            Grid(grid_id=1, slug="home", categories=[{"id": 5}, {"id": 9}]),
            Grid(grid_id=2, slug="sale", categories=[{"id": 7, "label": "Shoes"}]),
        ]
    )
