"""Tests for spacing post-processing."""

import numpy as np

from mapgen.placement.config import PlacementConfig
from mapgen.placement.distribution import DistributionContext
from mapgen.placement.rules import ObjectDefinition, PlacementRules, SubtypeRules
from mapgen.placement.spacing import SpacingPostProcessor, thin_by_spacing
from mapgen.placement.terrain import TerrainMap


def min_pairwise_distance(mask: np.ndarray) -> float:
    ys, xs = np.nonzero(mask)
    points = np.stack([ys, xs], axis=1).astype(np.float64)
    diff = points[:, None, :] - points[None, :, :]
    dist = np.hypot(diff[..., 0], diff[..., 1])
    np.fill_diagonal(dist, np.inf)
    return float(dist.min())


class TestThinBySpacing:
    """Tests for greedy Poisson-disk thinning."""

    def test_spacing_respected(self) -> None:
        """Kept cells are at least min_distance apart."""
        mask = np.ones((20, 20), dtype=np.uint8)
        thinned = thin_by_spacing(mask, 3.0, np.random.default_rng(0))
        assert thinned.any()
        assert min_pairwise_distance(thinned) >= 3.0

    def test_subset_of_input(self) -> None:
        """Thinning never adds cells."""
        mask = (np.random.default_rng(1).random((16, 16)) < 0.5).astype(np.uint8)
        thinned = thin_by_spacing(mask, 2.5, np.random.default_rng(2))
        assert (thinned <= mask).all()

    def test_small_distance_is_copy(self) -> None:
        """Distances of one cell or less change nothing."""
        mask = np.eye(5, dtype=np.uint8)
        thinned = thin_by_spacing(mask, 1.0, np.random.default_rng(0))
        np.testing.assert_array_equal(thinned, mask)
        assert thinned is not mask

    def test_exact_distance_kept(self) -> None:
        """Cells exactly min_distance apart are both kept."""
        mask = np.zeros((5, 5), dtype=np.uint8)
        mask[0, 0] = 1
        mask[0, 2] = 1
        mask[2, 2] = 1
        thinned = thin_by_spacing(mask, 2.0, np.random.default_rng(0))
        np.testing.assert_array_equal(thinned, mask)

    def test_closer_pair_thinned(self) -> None:
        """Of two diagonal neighbors under a distance of 2, one survives."""
        mask = np.zeros((4, 4), dtype=np.uint8)
        mask[1, 1] = 1
        mask[2, 2] = 1
        thinned = thin_by_spacing(mask, 2.0, np.random.default_rng(3))
        assert thinned.sum() == 1
        assert (thinned <= mask).all()

    def test_empty_mask(self) -> None:
        mask = np.zeros((6, 6), dtype=np.uint8)
        thinned = thin_by_spacing(mask, 3.0, np.random.default_rng(0))
        assert not thinned.any()

    def test_deterministic(self) -> None:
        mask = np.ones((12, 12), dtype=np.uint8)
        a = thin_by_spacing(mask, 2.0, np.random.default_rng(4))
        b = thin_by_spacing(mask, 2.0, np.random.default_rng(4))
        np.testing.assert_array_equal(a, b)


class TestSpacingPostProcessor:
    """Tests for the pipeline hook."""

    def test_uses_definition_spacing(self, flat_terrain: TerrainMap) -> None:
        """The hook thins by the type's min_distance_to_same_type."""
        definition = ObjectDefinition(
            name="Tree", placement_rules=PlacementRules(min_distance_to_same_type=2.0)
        )
        context = DistributionContext(
            grid=flat_terrain.grid,
            terrain=flat_terrain,
            custom_rules=SubtypeRules(),
            config=PlacementConfig(),
        )
        mask = np.ones(flat_terrain.grid.shape, dtype=np.uint8)
        thinned = SpacingPostProcessor()(mask, definition, context, np.random.default_rng(0))
        assert min_pairwise_distance(thinned) >= 2.0
