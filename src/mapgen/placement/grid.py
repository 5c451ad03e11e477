"""Uniform cell lattice over a continuous map area."""

import math
import numbers
from collections.abc import Iterator
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import ndimage

from ..exceptions import ConfigurationError
from ..types import DIRECTION_DELTAS, Direction, Point


@dataclass(frozen=True)
class Cell:
    """One grid cell: integer coordinates plus its bounds in map units."""

    cell_x: int
    cell_y: int
    x: float
    y: float
    width: float
    height: float

    @property
    def center_x(self) -> float:
        return (self.cell_x + 0.5) * self.width

    @property
    def center_y(self) -> float:
        return (self.cell_y + 0.5) * self.height

    @property
    def center(self) -> Point:
        return Point(x=self.center_x, y=self.center_y)


class Grid:
    """Partitions a width x height map into grid_size x grid_size cells.

    Cells are created on demand from coordinate arithmetic; the grid
    holds no per-cell objects. Arrays indexed by cell use (cell_y, cell_x)
    order, matching row-major cell order.
    """

    def __init__(self, width: float, height: float, grid_size: int):
        if not (math.isfinite(width) and math.isfinite(height)):
            raise ConfigurationError(
                f"Map dimensions must be finite, got {width}x{height}"
            )
        if width <= 0 or height <= 0:
            raise ConfigurationError(
                f"Map dimensions must be positive, got {width}x{height}"
            )
        if (
            not isinstance(grid_size, numbers.Integral)
            or isinstance(grid_size, bool)
            or grid_size <= 0
        ):
            raise ConfigurationError(
                f"grid_size must be a positive integer, got {grid_size}"
            )

        self.width = float(width)
        self.height = float(height)
        self.grid_size = int(grid_size)
        self.cell_width = self.width / self.grid_size
        self.cell_height = self.height / self.grid_size

    @property
    def shape(self) -> tuple[int, int]:
        """Array shape for per-cell data: (rows, columns)."""
        return (self.grid_size, self.grid_size)

    @property
    def cell_count(self) -> int:
        return self.grid_size * self.grid_size

    def in_bounds(self, cell_x: int, cell_y: int) -> bool:
        return 0 <= cell_x < self.grid_size and 0 <= cell_y < self.grid_size

    def cell_at_coords(self, cell_x: int, cell_y: int) -> Cell | None:
        """Get the cell at integer grid coordinates, or None if outside."""
        if not self.in_bounds(cell_x, cell_y):
            return None
        return Cell(
            cell_x=cell_x,
            cell_y=cell_y,
            x=cell_x * self.cell_width,
            y=cell_y * self.cell_height,
            width=self.cell_width,
            height=self.cell_height,
        )

    def cell_at(self, x: float, y: float) -> Cell | None:
        """Get the cell containing a map point, or None if outside."""
        if not (math.isfinite(x) and math.isfinite(y)):
            return None
        return self.cell_at_coords(
            math.floor(x / self.cell_width), math.floor(y / self.cell_height)
        )

    def cell_at_point(self, point: Point) -> Cell | None:
        return self.cell_at(point.x, point.y)

    def cells(self) -> Iterator[Cell]:
        """Iterate all cells in row-major order."""
        for cell_y in range(self.grid_size):
            for cell_x in range(self.grid_size):
                yield self.cell_at_coords(cell_x, cell_y)

    def index_of(self, cell: Cell) -> int:
        """Row-major index of a cell."""
        return cell.cell_y * self.grid_size + cell.cell_x

    def neighbor_in(self, cell: Cell, direction: Direction) -> Cell | None:
        dx, dy = DIRECTION_DELTAS[direction]
        return self.cell_at_coords(cell.cell_x + dx, cell.cell_y + dy)

    def neighbors(self, cell: Cell) -> list[Cell]:
        """Get the 8-connected Moore neighborhood, omitting out-of-bounds cells."""
        neighbors = []
        for direction in Direction:
            neighbor = self.neighbor_in(cell, direction)
            if neighbor is not None:
                neighbors.append(neighbor)
        return neighbors

    def center_arrays(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Cell center coordinates as (center_x, center_y) arrays of grid shape."""
        centers_x = (np.arange(self.grid_size) + 0.5) * self.cell_width
        centers_y = (np.arange(self.grid_size) + 0.5) * self.cell_height
        grid_y, grid_x = np.meshgrid(centers_y, centers_x, indexing="ij")
        return grid_x, grid_y

    def coords_in_radius(
        self,
        center_x: float,
        center_y: float,
        radius: float,
    ) -> tuple[NDArray[np.intp], NDArray[np.intp], NDArray[np.float64]]:
        """Find cells whose center lies within radius of a point.

        The search is first bounded to a box of
        ceil(radius / min(cell_width, cell_height)) cells around the cell
        containing the point, then filtered by exact distance.

        Args:
            center_x: Query point x in map units.
            center_y: Query point y in map units.
            radius: Search radius in map units.

        Returns:
            Tuple of (cell_y indices, cell_x indices, center distances).
            Empty arrays for negative or non-finite inputs.
        """
        empty = (
            np.empty(0, dtype=np.intp),
            np.empty(0, dtype=np.intp),
            np.empty(0, dtype=np.float64),
        )
        if not all(math.isfinite(v) for v in (center_x, center_y, radius)):
            return empty
        if radius < 0:
            return empty

        center_cell_x = math.floor(center_x / self.cell_width)
        center_cell_y = math.floor(center_y / self.cell_height)
        radius_in_cells = math.ceil(radius / min(self.cell_width, self.cell_height))

        x_lo = max(center_cell_x - radius_in_cells, 0)
        x_hi = min(center_cell_x + radius_in_cells, self.grid_size - 1)
        y_lo = max(center_cell_y - radius_in_cells, 0)
        y_hi = min(center_cell_y + radius_in_cells, self.grid_size - 1)
        if x_lo > x_hi or y_lo > y_hi:
            return empty

        ys, xs = np.meshgrid(
            np.arange(y_lo, y_hi + 1), np.arange(x_lo, x_hi + 1), indexing="ij"
        )
        dist = np.hypot(
            (xs + 0.5) * self.cell_width - center_x,
            (ys + 0.5) * self.cell_height - center_y,
        )
        inside = dist <= radius
        return ys[inside], xs[inside], dist[inside]

    def cells_in_radius(
        self, center_x: float, center_y: float, radius: float
    ) -> list[Cell]:
        """Get all cells whose center lies within radius of a point."""
        ys, xs, _ = self.coords_in_radius(center_x, center_y, radius)
        return [self.cell_at_coords(int(x), int(y)) for y, x in zip(ys, xs)]

    def __repr__(self) -> str:
        return (
            f"Grid(width={self.width:g}, height={self.height:g}, "
            f"grid_size={self.grid_size})"
        )


# 3x3 kernel for counting Moore neighbors, excluding the center
MOORE_KERNEL = np.array([[1, 1, 1], [1, 0, 1], [1, 1, 1]], dtype=np.int32)


def moore_neighbor_count(mask: NDArray[np.bool_]) -> NDArray[np.int32]:
    """Count set cells in each cell's 8-neighborhood.

    Cells beyond the grid edge count as unset; the count never wraps.
    """
    return ndimage.convolve(
        mask.astype(np.int32), MOORE_KERNEL, mode="constant", cval=0
    )
