"""Core types shared by the placement stages."""

from enum import Enum, IntEnum

from pydantic import BaseModel


class Direction(IntEnum):
    """8-direction compass enum, clockwise from north."""

    NORTH = 1
    NORTHEAST = 2
    EAST = 3
    SOUTHEAST = 4
    SOUTH = 5
    SOUTHWEST = 6
    WEST = 7
    NORTHWEST = 8

    @property
    def is_diagonal(self) -> bool:
        dx, dy = DIRECTION_DELTAS[self]
        return dx != 0 and dy != 0


# Cell deltas per direction
# Coordinate system: +X is East, +Y is South
DIRECTION_DELTAS: dict[Direction, tuple[int, int]] = {
    Direction.NORTH: (0, -1),
    Direction.NORTHEAST: (1, -1),
    Direction.EAST: (1, 0),
    Direction.SOUTHEAST: (1, 1),
    Direction.SOUTH: (0, 1),
    Direction.SOUTHWEST: (-1, 1),
    Direction.WEST: (-1, 0),
    Direction.NORTHWEST: (-1, -1),
}


# Normalized map anchor for each compass word, +Y south
DIRECTION_ANCHORS: dict[str, tuple[float, float]] = {
    "north": (0.5, 0.1),
    "south": (0.5, 0.9),
    "east": (0.9, 0.5),
    "west": (0.1, 0.5),
    "northeast": (0.9, 0.1),
    "northwest": (0.1, 0.1),
    "southeast": (0.9, 0.9),
    "southwest": (0.1, 0.9),
    "center": (0.5, 0.5),
}


# Opposing direction pairs checked for ridges
OPPOSING_PAIRS: tuple[tuple[Direction, Direction], ...] = (
    (Direction.NORTH, Direction.SOUTH),
    (Direction.EAST, Direction.WEST),
    (Direction.NORTHEAST, Direction.SOUTHWEST),
    (Direction.NORTHWEST, Direction.SOUTHEAST),
)


class ElevationClass(IntEnum):
    """Coarse height bucket used by terrain-affinity matching."""

    LOWLAND = 0
    MIDLAND = 1
    HIGHLAND = 2


class TerrainAffinity(str, Enum):
    """Terrain tags a request can be anchored to."""

    MOUNTAINS = "mountains"
    HILLS = "hills"
    FLATLANDS = "flatlands"
    RIVER = "river"
    LAKE = "lake"
    FOREST = "forest"


class DistributionStrategy(str, Enum):
    """Names of the mask synthesis strategies."""

    RANDOM = "random"
    NATURAL = "natural"
    CLUSTERED = "clustered"
    WATER = "water"


class Point(BaseModel, frozen=True):
    """Immutable point in continuous map units."""

    x: float
    y: float

    def __str__(self) -> str:
        return f"({self.x:g}, {self.y:g})"
