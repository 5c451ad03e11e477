"""Shared test fixtures for placement tests."""

import numpy as np
import pytest

from mapgen.heightmap import ArrayHeightSource
from mapgen.placement.config import PlacementConfig
from mapgen.placement.grid import Grid
from mapgen.placement.rules import RuleTable, default_rule_table
from mapgen.placement.terrain import TerrainMap, analyze_terrain


def uniform_source(value: float, size: float = 8.0) -> ArrayHeightSource:
    """Constant-height source over a size x size map."""
    return ArrayHeightSource(np.full((4, 4), value), size, size)


@pytest.fixture
def make_uniform_source():
    """Factory for constant-height sources."""
    return uniform_source


@pytest.fixture
def grid() -> Grid:
    """8x8 grid over an 8x8 map, so each cell is 1x1."""
    return Grid(8.0, 8.0, 8)


@pytest.fixture
def rules() -> RuleTable:
    return default_rule_table()


@pytest.fixture
def small_config() -> PlacementConfig:
    """Small, fast configuration for pipeline runs."""
    return PlacementConfig(grid_size=16, samples_per_cell=3, seed=7)


@pytest.fixture
def flat_terrain(grid: Grid) -> TerrainMap:
    """Uniform 0.5 terrain: every cell flat midland."""
    return analyze_terrain(grid, uniform_source(0.5), samples_per_cell=3)


@pytest.fixture
def rolling_heights() -> np.ndarray:
    """32x32 heights with a hill, low ground and a small lake."""
    ys, xs = np.mgrid[0:32, 0:32] / 31.0
    heights = 0.15 + 0.6 * np.exp(-((xs - 0.7) ** 2 + (ys - 0.3) ** 2) / 0.05)
    heights += 0.1 * xs
    heights[24:30, 2:8] = 0.03
    return np.clip(heights, 0.0, 1.0)


@pytest.fixture
def rolling_source(rolling_heights: np.ndarray) -> ArrayHeightSource:
    """Rolling terrain stretched over a 16x16 map."""
    return ArrayHeightSource(rolling_heights, 16.0, 16.0)
