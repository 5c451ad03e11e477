"""Terrain analysis: per-cell height, slope and feature classification."""

import math
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray

from ..heightmap.sources import HeightSource
from ..types import DIRECTION_DELTAS, OPPOSING_PAIRS, Direction, ElevationClass
from .config import ClassificationConfig
from .grid import Cell, Grid

logger = structlog.get_logger()


@dataclass(frozen=True)
class TerrainFeatures:
    """Feature flags for one cell."""

    is_peak: bool
    is_valley: bool
    is_ridge: bool
    is_flat: bool
    is_steep: bool
    elevation_class: ElevationClass


@dataclass(frozen=True)
class TerrainProperties:
    """Terrain statistics for one cell."""

    height: float
    min_height: float
    max_height: float
    slope: float
    slopes: dict[Direction, float]
    features: TerrainFeatures


@dataclass
class TerrainMap:
    """Analyzed terrain for a grid, one array of grid shape per property.

    Arrays are read-only once analysis completes. Directional slopes are
    stacked along the first axis in Direction order.
    """

    grid: Grid
    height: NDArray[np.float64]
    min_height: NDArray[np.float64]
    max_height: NDArray[np.float64]
    slope: NDArray[np.float64]
    slopes: NDArray[np.float64]
    is_peak: NDArray[np.bool_]
    is_valley: NDArray[np.bool_]
    is_ridge: NDArray[np.bool_]
    is_flat: NDArray[np.bool_]
    is_steep: NDArray[np.bool_]
    elevation_class: NDArray[np.uint8]
    invalid: NDArray[np.bool_]

    def slope_toward(self, direction: Direction) -> NDArray[np.float64]:
        """Signed slope toward a neighbor direction (positive = uphill)."""
        return self.slopes[direction - 1]

    @property
    def invalid_count(self) -> int:
        return int(np.count_nonzero(self.invalid))

    def properties_at(self, cell: Cell) -> TerrainProperties:
        """Assemble the TerrainProperties view for one cell."""
        y, x = cell.cell_y, cell.cell_x
        return TerrainProperties(
            height=float(self.height[y, x]),
            min_height=float(self.min_height[y, x]),
            max_height=float(self.max_height[y, x]),
            slope=float(self.slope[y, x]),
            slopes={d: float(self.slopes[d - 1, y, x]) for d in Direction},
            features=TerrainFeatures(
                is_peak=bool(self.is_peak[y, x]),
                is_valley=bool(self.is_valley[y, x]),
                is_ridge=bool(self.is_ridge[y, x]),
                is_flat=bool(self.is_flat[y, x]),
                is_steep=bool(self.is_steep[y, x]),
                elevation_class=ElevationClass(int(self.elevation_class[y, x])),
            ),
        )

    def freeze(self) -> None:
        for name in (
            "height", "min_height", "max_height", "slope", "slopes", "is_peak",
            "is_valley", "is_ridge", "is_flat", "is_steep", "elevation_class",
            "invalid",
        ):
            getattr(self, name).setflags(write=False)


def shift_to_neighbor(
    field: NDArray,
    dx: int,
    dy: int,
    fill: float | bool,
) -> NDArray:
    """Align each cell with its neighbor at offset (dx, dy).

    ``out[y, x] == field[y + dy, x + dx]`` where that neighbor exists,
    ``fill`` otherwise. Never wraps around the edges.
    """
    rows, cols = field.shape
    out = np.full(field.shape, fill, dtype=field.dtype)
    dst_y = slice(max(-dy, 0), rows - max(dy, 0))
    dst_x = slice(max(-dx, 0), cols - max(dx, 0))
    src_y = slice(max(dy, 0), rows - max(-dy, 0))
    src_x = slice(max(dx, 0), cols - max(-dx, 0))
    out[dst_y, dst_x] = field[src_y, src_x]
    return out


def _out_of_range(values: NDArray[np.float64]) -> NDArray[np.bool_]:
    """True where a height is non-finite or outside [0, 1]."""
    with np.errstate(invalid="ignore"):
        return ~np.isfinite(values) | (values < 0.0) | (values > 1.0)


def _sample_cells(
    grid: Grid,
    source: HeightSource,
    samples_per_cell: int,
) -> tuple[NDArray[np.float64], ...]:
    """Sample an N x N lattice inside every cell.

    Processes one row of cells at a time to bound memory.

    Returns:
        Tuple of (mean, min, max, invalid) arrays of grid shape.
    """
    n = samples_per_cell
    size = grid.grid_size
    mean = np.empty(grid.shape, dtype=np.float64)
    lo = np.empty(grid.shape, dtype=np.float64)
    hi = np.empty(grid.shape, dtype=np.float64)
    invalid = np.zeros(grid.shape, dtype=bool)

    offsets_x = (np.arange(n) + 0.5) * (grid.cell_width / n)
    offsets_y = (np.arange(n) + 0.5) * (grid.cell_height / n)
    origins_x = np.arange(size) * grid.cell_width

    # (cell_x, sample_y, sample_x) for one row of cells
    xs = np.broadcast_to(
        origins_x[:, None, None] + offsets_x[None, None, :], (size, n, n)
    )
    for cell_y in range(size):
        origin_y = cell_y * grid.cell_height
        ys = np.broadcast_to((origin_y + offsets_y)[None, :, None], (size, n, n))
        samples = np.broadcast_to(
            np.asarray(source.height_at(xs, ys), dtype=np.float64), (size, n, n)
        ).reshape(size, n * n)

        mean[cell_y] = samples.mean(axis=1)
        lo[cell_y] = samples.min(axis=1)
        hi[cell_y] = samples.max(axis=1)
        invalid[cell_y] = _out_of_range(samples).any(axis=1)

    return mean, lo, hi, invalid


def _directional_slopes(
    grid: Grid,
    center_heights: NDArray[np.float64],
) -> NDArray[np.float64]:
    """Signed slope from each cell center toward each neighbor center.

    Distance is the cell width for cardinal directions and width * sqrt(2)
    for diagonals. Missing neighbors leave the slope at 0.
    """
    slopes = np.zeros((len(Direction), *grid.shape), dtype=np.float64)
    for direction in Direction:
        dx, dy = DIRECTION_DELTAS[direction]
        distance = grid.cell_width * (math.sqrt(2) if direction.is_diagonal else 1.0)
        neighbor = shift_to_neighbor(center_heights, dx, dy, np.nan)
        delta = (neighbor - center_heights) / distance
        slopes[direction - 1] = np.where(np.isnan(neighbor), 0.0, delta)
    return slopes


def classify_features(
    height: NDArray[np.float64],
    slope: NDArray[np.float64],
    slopes: NDArray[np.float64],
    config: ClassificationConfig,
) -> tuple[NDArray[np.bool_], ...]:
    """Classify peaks, valleys, ridges, flats, steeps and elevation class.

    Runs over completed height and slope fields so every neighbor is
    populated regardless of position in the grid.

    Args:
        height: Mean cell heights.
        slope: Scalar slope magnitudes.
        slopes: Directional slopes stacked in Direction order.
        config: Classification thresholds.

    Returns:
        Tuple of (is_peak, is_valley, is_ridge, is_flat, is_steep,
        elevation_class).
    """
    is_peak = np.ones(height.shape, dtype=bool)
    is_valley = np.ones(height.shape, dtype=bool)
    for dx, dy in DIRECTION_DELTAS.values():
        # Missing neighbors never disqualify
        is_peak &= shift_to_neighbor(height, dx, dy, -np.inf) < height
        is_valley &= shift_to_neighbor(height, dx, dy, np.inf) > height

    is_ridge = np.zeros(height.shape, dtype=bool)
    for first, second in OPPOSING_PAIRS:
        is_ridge |= np.sign(slopes[first - 1]) * np.sign(slopes[second - 1]) < 0

    with np.errstate(invalid="ignore"):
        is_flat = slope < config.flat_slope_max
        is_steep = slope > config.steep_slope_min

    elevation_class = np.select(
        [height < config.lowland_height_max, height < config.midland_height_max],
        [int(ElevationClass.LOWLAND), int(ElevationClass.MIDLAND)],
        default=int(ElevationClass.HIGHLAND),
    ).astype(np.uint8)

    return is_peak, is_valley, is_ridge, is_flat, is_steep, elevation_class


def analyze_terrain(
    grid: Grid,
    source: HeightSource,
    samples_per_cell: int = 5,
    config: ClassificationConfig | None = None,
) -> TerrainMap:
    """Compute terrain properties for every cell of the grid.

    Pass one samples heights and slopes for all cells; pass two
    classifies features from the completed fields.

    Samples that are non-finite or outside [0, 1] do not raise here:
    the affected cells are flagged in ``TerrainMap.invalid`` so that
    requests depending on them can fail individually.

    Args:
        grid: Grid to analyze.
        source: Height source covering the grid's map extent.
        samples_per_cell: Sub-samples per cell side.
        config: Classification thresholds.

    Returns:
        Read-only TerrainMap.
    """
    config = config or ClassificationConfig()

    # Pass one: heights and slopes
    mean, lo, hi, invalid = _sample_cells(grid, source, samples_per_cell)
    slope = (hi - lo) / grid.cell_width

    centers_x, centers_y = grid.center_arrays()
    center_heights = np.broadcast_to(
        np.asarray(source.height_at(centers_x, centers_y), dtype=np.float64),
        grid.shape,
    )
    center_invalid = _out_of_range(center_heights)
    invalid |= center_invalid
    # A bad center read also corrupts the slope toward it from every neighbor
    for dx, dy in DIRECTION_DELTAS.values():
        invalid |= shift_to_neighbor(center_invalid, dx, dy, False)

    slopes = _directional_slopes(grid, center_heights)

    # Pass two: classification over completed data
    is_peak, is_valley, is_ridge, is_flat, is_steep, elevation_class = (
        classify_features(mean, slope, slopes, config)
    )

    terrain = TerrainMap(
        grid=grid,
        height=mean,
        min_height=lo,
        max_height=hi,
        slope=slope,
        slopes=slopes,
        is_peak=is_peak,
        is_valley=is_valley,
        is_ridge=is_ridge,
        is_flat=is_flat,
        is_steep=is_steep,
        elevation_class=elevation_class,
        invalid=invalid,
    )
    terrain.freeze()

    logger.info(
        "terrain_analyzed",
        cells=grid.cell_count,
        peaks=int(np.count_nonzero(is_peak)),
        valleys=int(np.count_nonzero(is_valley)),
        flat=int(np.count_nonzero(is_flat)),
        steep=int(np.count_nonzero(is_steep)),
        invalid_cells=terrain.invalid_count,
    )
    if terrain.invalid_count:
        logger.warning("terrain_invalid_samples", invalid_cells=terrain.invalid_count)

    return terrain
