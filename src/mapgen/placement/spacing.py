"""Mask post-processing hooks.

Rule tables declare ``min_distance_to_same_type`` and ``can_overlap``, but
the distribution strategies ignore both. Spacing is enforced only when a
post-processor is attached to the pipeline; ``can_overlap`` stays advisory
for the instance placement stage.
"""

from typing import Protocol

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import cKDTree

from .distribution import DistributionContext
from .rules import ObjectDefinition


class MaskPostProcessor(Protocol):
    """Transforms the merged mask of one object type."""

    def __call__(
        self,
        mask: NDArray[np.uint8],
        definition: ObjectDefinition,
        context: DistributionContext,
        rng: np.random.Generator,
    ) -> NDArray[np.uint8]:
        ...


def thin_by_spacing(
    mask: NDArray[np.uint8],
    min_distance: float,
    rng: np.random.Generator,
) -> NDArray[np.uint8]:
    """Greedy Poisson-disk thinning of a mask.

    Active cells are visited in random order; a cell is kept unless an
    already-kept cell lies closer than ``min_distance`` cells. The result
    is a subset of the input.

    Args:
        mask: 0/1 mask.
        min_distance: Minimum center-to-center spacing in cells.
        rng: Random number generator for the visiting order.

    Returns:
        New thinned mask.
    """
    if min_distance <= 1.0:
        # Distinct cells are always at least one cell apart
        return mask.copy()

    ys, xs = np.nonzero(mask)
    result = np.zeros_like(mask)
    if len(ys) == 0:
        return result

    points = np.stack([xs, ys], axis=1)
    tree = cKDTree(points)
    # Ball queries include the boundary; exact lattice distances below
    # decide which neighbors are strictly closer than min_distance
    nearby = tree.query_ball_point(points, r=min_distance)
    limit = min_distance * min_distance

    blocked = np.zeros(len(points), dtype=bool)
    for i in rng.permutation(len(points)):
        if blocked[i]:
            continue
        result[ys[i], xs[i]] = 1

        candidates = np.asarray(nearby[i], dtype=np.intp)
        offsets = points[candidates] - points[i]
        close = (offsets * offsets).sum(axis=1) < limit
        blocked[candidates[close]] = True

    return result


class SpacingPostProcessor:
    """Enforces ``min_distance_to_same_type`` by thinning each merged mask."""

    def __call__(
        self,
        mask: NDArray[np.uint8],
        definition: ObjectDefinition,
        context: DistributionContext,
        rng: np.random.Generator,
    ) -> NDArray[np.uint8]:
        return thin_by_spacing(
            mask, definition.placement_rules.min_distance_to_same_type, rng
        )
