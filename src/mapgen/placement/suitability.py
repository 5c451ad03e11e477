"""Suitability scoring: how favorable each cell is for one request.

Scores combine a hard gate from the object's placement rules with
multiplicative factors for location affinity, subtype preferences and
density. Any single weak factor suppresses the whole score. Products can
exceed 1, so the final buffer is clamped to [0, 1] before it is used as a
placement probability.
"""

import numpy as np
from numpy.typing import NDArray

from ..exceptions import DataIntegrityError
from ..types import ElevationClass, TerrainAffinity
from .config import WaterConfig
from .grid import moore_neighbor_count
from .requests import AnchorLocation, ObjectRequest, TerrainLocation
from .rules import ObjectDefinition, PlacementRules, SubtypeRules
from .terrain import TerrainMap

AFFINITY_MATCH = 1.5
AFFINITY_MISS = 0.1
ANCHOR_EDGE_FACTOR = 0.5
ANCHOR_OUTSIDE_FACTOR = 0.2
UNMET_REQUIREMENT_FACTOR = 0.1


def terrain_affinity_mask(
    terrain: TerrainMap,
    affinity: TerrainAffinity,
    water: WaterConfig | None = None,
) -> NDArray[np.bool_]:
    """Cells whose classified terrain matches an affinity tag."""
    water = water or WaterConfig()
    height = terrain.height
    slope = terrain.slope

    with np.errstate(invalid="ignore"):
        if affinity == TerrainAffinity.MOUNTAINS:
            return (terrain.elevation_class == ElevationClass.HIGHLAND) & (slope > 0.2)
        if affinity == TerrainAffinity.HILLS:
            return (terrain.elevation_class == ElevationClass.MIDLAND) & (slope > 0.1)
        if affinity == TerrainAffinity.FLATLANDS:
            return terrain.is_flat.copy()
        if affinity in (TerrainAffinity.RIVER, TerrainAffinity.LAKE):
            return height < water.water_height_max
        if affinity == TerrainAffinity.FOREST:
            return (slope < 0.15) & (height > 0.05) & (height < 0.8)
    raise ValueError(f"Unhandled terrain affinity: {affinity}")


def hard_gate(terrain: TerrainMap, rules: PlacementRules) -> NDArray[np.bool_]:
    """Cells that satisfy the slope and height constraints."""
    with np.errstate(invalid="ignore"):
        return (
            (terrain.slope <= rules.max_slope)
            & (terrain.height >= rules.min_height)
            & (terrain.height <= rules.max_height)
        )


def location_factor(
    terrain: TerrainMap,
    location: TerrainLocation | AnchorLocation | None,
    water: WaterConfig | None = None,
) -> NDArray[np.float64] | float:
    """Multiplier from the request's terrain affinity or anchor point."""
    if location is None:
        return 1.0

    if isinstance(location, TerrainLocation):
        match = terrain_affinity_mask(terrain, location.terrain, water)
        return np.where(match, AFFINITY_MATCH, AFFINITY_MISS)

    grid = terrain.grid
    centers_x, centers_y = grid.center_arrays()
    distance = np.hypot(
        centers_x / grid.width - location.x, centers_y / grid.height - location.y
    )
    inside = distance <= location.radius
    if location.radius > 0:
        falloff = 1.0 - ANCHOR_EDGE_FACTOR * distance / location.radius
    else:
        falloff = np.ones(grid.shape)
    return np.where(inside, falloff, ANCHOR_OUTSIDE_FACTOR)


def water_access_mask(
    terrain: TerrainMap, water: WaterConfig | None = None
) -> NDArray[np.bool_]:
    """Cells with at least one low-lying water cell among their neighbors."""
    water = water or WaterConfig()
    with np.errstate(invalid="ignore"):
        low_water = (terrain.height < water.water_height_max) & (
            terrain.elevation_class == ElevationClass.LOWLAND
        )
    return moore_neighbor_count(low_water) > 0


def subtype_factor(
    terrain: TerrainMap,
    rules: PlacementRules,
    custom: SubtypeRules,
    water: WaterConfig | None = None,
) -> NDArray[np.float64]:
    """Product of the subtype's preference multipliers."""
    height = terrain.height
    factor = np.ones(terrain.grid.shape, dtype=np.float64)

    if custom.prefer_higher_elevation:
        factor *= 0.5 + 0.5 * height
    if custom.prefer_lower_elevation:
        factor *= 1.0 - 0.5 * height
    if custom.prefer_steep_slopes:
        factor *= 0.5 + 0.5 * (terrain.slope / rules.max_slope)
    if custom.require_flat_area:
        factor *= np.where(terrain.is_flat, 1.0, UNMET_REQUIREMENT_FACTOR)
    if custom.require_water_access:
        factor *= np.where(
            water_access_mask(terrain, water), 1.0, UNMET_REQUIREMENT_FACTOR
        )

    return factor


def compute_suitability(
    request: ObjectRequest,
    definition: ObjectDefinition,
    terrain: TerrainMap,
    water: WaterConfig | None = None,
) -> NDArray[np.float64]:
    """Score every cell of the terrain for one request.

    Args:
        request: The object request being placed.
        definition: Rule table entry for the request's type.
        terrain: Analyzed terrain.
        water: Water height thresholds.

    Returns:
        New buffer of grid shape with values in [0, 1]; exactly 0 where
        the hard gate fails.

    Raises:
        DataIntegrityError: If any cell has invalid height samples.
    """
    if terrain.invalid_count:
        raise DataIntegrityError(
            f"{terrain.invalid_count} cells have non-finite or out-of-range "
            f"height samples; cannot score {request}"
        )

    rules = definition.placement_rules
    custom = definition.subtype_rules(request.subtype)

    score = np.ones(terrain.grid.shape, dtype=np.float64)
    score *= location_factor(terrain, request.location, water)
    score *= subtype_factor(terrain, rules, custom, water)
    score *= request.density

    score = np.where(hard_gate(terrain, rules), score, 0.0)
    return np.clip(score, 0.0, 1.0)
