"""Distribution strategies: turn suitability into binary placement masks.

Every strategy reads a clamped suitability buffer and draws from an
explicit numpy Generator, so identical inputs and seed reproduce the
identical mask.
"""

from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
import structlog
from numpy.typing import NDArray

from ..types import DistributionStrategy
from .config import PlacementConfig
from .grid import Grid, moore_neighbor_count
from .requests import ObjectRequest
from .rules import ObjectDefinition, SubtypeRules
from .terrain import TerrainMap

logger = structlog.get_logger()


@dataclass(frozen=True)
class DistributionContext:
    """Read-only inputs shared by the strategies for one request."""

    grid: Grid
    terrain: TerrainMap
    custom_rules: SubtypeRules
    config: PlacementConfig


Strategy = Callable[
    [NDArray[np.float64], DistributionContext, np.random.Generator], NDArray[np.uint8]
]


def random_mask(
    suitability: NDArray[np.float64],
    context: DistributionContext,
    rng: np.random.Generator,
) -> NDArray[np.uint8]:
    """Independent Bernoulli(suitability) draw per cell."""
    draws = rng.random(suitability.shape)
    return (draws < suitability).astype(np.uint8)


def natural_mask(
    suitability: NDArray[np.float64],
    context: DistributionContext,
    rng: np.random.Generator,
) -> NDArray[np.uint8]:
    """Seed from strong cells, then grow organic patches with a cellular automaton.

    Seeds are Bernoulli draws restricted to cells above the seed
    threshold. Each refinement generation is computed from a snapshot of
    the previous one: active cells survive with a neighbor count inside
    the survival band; inactive cells are born with a count inside the
    birth band if their own suitability clears the birth threshold.
    """
    cfg = context.config.natural

    draws = rng.random(suitability.shape)
    active = (suitability > cfg.seed_threshold) & (draws < suitability)
    can_be_born = suitability > cfg.birth_threshold

    for _ in range(cfg.iterations):
        neighbor_count = moore_neighbor_count(active)

        survivors = active & (neighbor_count >= cfg.survive_min) & (
            neighbor_count <= cfg.survive_max
        )
        births = (
            ~active
            & (neighbor_count >= cfg.birth_min)
            & (neighbor_count <= cfg.birth_max)
            & can_be_born
        )
        active = survivors | births

    return active.astype(np.uint8)


def cluster_centers(
    suitability: NDArray[np.float64],
    threshold: float,
    max_clusters: int,
) -> list[tuple[int, int]]:
    """Top cells above threshold, highest suitability first.

    Ties keep row-major order.

    Returns:
        List of (cell_y, cell_x) coordinates.
    """
    flat = suitability.ravel()
    candidates = np.flatnonzero(flat > threshold)
    order = np.lexsort((candidates, -flat[candidates]))
    chosen = candidates[order][:max_clusters]
    cols = suitability.shape[1]
    return [(int(i // cols), int(i % cols)) for i in chosen]


def clustered_mask(
    suitability: NDArray[np.float64],
    context: DistributionContext,
    rng: np.random.Generator,
) -> NDArray[np.uint8]:
    """Concentrated groups around the most suitable cells.

    Around each center, cells within the cluster radius are drawn with
    probability (1 - distance / radius) * suitability. Clusters only ever
    set cells; overlapping clusters never clear earlier ones.
    """
    cfg = context.config.clustered
    grid = context.grid
    mask = np.zeros(suitability.shape, dtype=np.uint8)

    radius = grid.width * cfg.radius_fraction
    centers = cluster_centers(suitability, cfg.center_threshold, cfg.max_clusters)

    for cell_y, cell_x in centers:
        center = grid.cell_at_coords(cell_x, cell_y)
        ys, xs, distance = grid.coords_in_radius(center.center_x, center.center_y, radius)

        probability = (1.0 - distance / radius) * suitability[ys, xs]
        hits = rng.random(len(ys)) < probability
        mask[ys[hits], xs[hits]] = 1

    logger.debug("clusters_placed", centers=len(centers), radius=radius)
    return mask


def water_eligibility(
    terrain: TerrainMap,
    custom_rules: SubtypeRules,
    config: PlacementConfig,
) -> NDArray[np.bool_]:
    """Cells a water object may occupy, by the subtype's water requirement.

    Deep-water and water-edge requirements each admit their own cells;
    subtypes with neither flag accept any water cell.
    """
    height = terrain.height
    with np.errstate(invalid="ignore"):
        is_water = height < config.water.water_height_max
        is_deep_water = height < config.water.deep_water_height_max
    is_water_edge = ~is_water & (moore_neighbor_count(is_water) > 0)

    if not (custom_rules.require_deep_water or custom_rules.require_water_edge):
        return is_water

    eligible = np.zeros(height.shape, dtype=bool)
    if custom_rules.require_deep_water:
        eligible |= is_deep_water
    if custom_rules.require_water_edge:
        eligible |= is_water_edge
    return eligible


def water_mask(
    suitability: NDArray[np.float64],
    context: DistributionContext,
    rng: np.random.Generator,
) -> NDArray[np.uint8]:
    """Bernoulli draw restricted to water cells matching the subtype."""
    eligible = water_eligibility(context.terrain, context.custom_rules, context.config)
    probability = np.where(eligible, suitability, 0.0)
    draws = rng.random(suitability.shape)
    return (draws < probability).astype(np.uint8)


STRATEGIES: dict[DistributionStrategy, Strategy] = {
    DistributionStrategy.RANDOM: random_mask,
    DistributionStrategy.NATURAL: natural_mask,
    DistributionStrategy.CLUSTERED: clustered_mask,
    DistributionStrategy.WATER: water_mask,
}


def resolve_strategy(
    request: ObjectRequest, definition: ObjectDefinition
) -> DistributionStrategy:
    """Pick the request's strategy, else the type default, else random."""
    name = request.distribution or definition.default_distribution
    try:
        return DistributionStrategy(name)
    except ValueError:
        logger.warning(
            "unknown_distribution",
            distribution=name,
            object_type=request.object_type,
            fallback=DistributionStrategy.RANDOM.value,
        )
        return DistributionStrategy.RANDOM


def synthesize_mask(
    strategy: DistributionStrategy,
    suitability: NDArray[np.float64],
    context: DistributionContext,
    rng: np.random.Generator,
) -> NDArray[np.uint8]:
    """Run a strategy and return a 0/1 mask of grid shape."""
    return STRATEGIES[strategy](suitability, context, rng)
