"""Tests for the end-to-end placement pipeline."""

import numpy as np
import pytest

from mapgen.exceptions import ConfigurationError
from mapgen.heightmap import ArrayHeightSource
from mapgen.placement.config import PlacementConfig
from mapgen.placement.pipeline import (
    PlacementPipeline,
    generate_placement_masks,
    request_rng,
)
from mapgen.placement.requests import AnchorLocation, ObjectRequest, TerrainLocation
from mapgen.placement.rules import RuleTable, parse_rule_table
from mapgen.types import TerrainAffinity


def min_spacing(cells: np.ndarray) -> float:
    """Smallest center distance between two set cells, in cells."""
    ys, xs = np.nonzero(cells)
    points = np.stack([ys, xs], axis=1).astype(np.float64)
    diff = points[:, None, :] - points[None, :, :]
    dist = np.hypot(diff[..., 0], diff[..., 1])
    np.fill_diagonal(dist, np.inf)
    return float(dist.min())


@pytest.fixture
def marker_rules() -> RuleTable:
    """One type that must keep three cells between instances."""
    return parse_rule_table(
        {
            "objects": {
                "marker": {
                    "name": "Marker",
                    "placement_rules": {"min_distance_to_same_type": 3},
                }
            }
        }
    )


@pytest.fixture
def requests() -> list[ObjectRequest]:
    """A mixed request list, deliberately not in priority order."""
    return [
        ObjectRequest(
            object_type="rock",
            subtype="boulder",
            density=0.6,
            location=TerrainLocation(terrain=TerrainAffinity.HILLS),
        ),
        ObjectRequest(
            object_type="tree",
            subtype="oak",
            density=0.8,
            location=TerrainLocation(terrain=TerrainAffinity.FOREST),
        ),
        ObjectRequest(
            object_type="building",
            subtype="village",
            density=0.9,
            location=AnchorLocation(x=0.3, y=0.6, radius=0.3),
        ),
        ObjectRequest(object_type="water_object", subtype="boat", density=1.0),
        ObjectRequest(object_type="vegetation", subtype="grass", density=0.5),
    ]


class RecordingPostProcessor:
    """Records the order masks are produced in and passes them through."""

    def __init__(self):
        self.seen: list[str] = []

    def __call__(self, mask, definition, context, rng):
        self.seen.append(definition.name)
        return mask


class TestPipelineOutput:
    """Tests for mask shape and content."""

    def test_one_mask_per_type(
        self, rolling_source, requests, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Every recognized type gets a grid-shaped binary mask."""
        result = generate_placement_masks(
            rolling_source, requests, 16.0, 16.0, rules=rules, config=small_config
        )
        assert set(result.masks) == {
            "rock",
            "tree",
            "building",
            "water_object",
            "vegetation",
        }
        for mask in result.masks.values():
            assert mask.cells.shape == (16, 16)
            assert mask.cells.dtype == np.uint8
            assert set(np.unique(mask.cells)) <= {0, 1}
            assert mask.grid_size == 16
            assert (mask.width, mask.height) == (16.0, 16.0)
        assert result.passed
        assert result.warnings == []

    def test_hard_constraints_hold(
        self, rolling_source, requests, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """No mask sets a cell its type's rules forbid."""
        result = generate_placement_masks(
            rolling_source, requests, 16.0, 16.0, rules=rules, config=small_config
        )
        terrain = result.terrain
        for object_type, mask in result.masks.items():
            placement = rules.get(object_type).placement_rules
            forbidden = (
                (terrain.slope > placement.max_slope)
                | (terrain.height < placement.min_height)
                | (terrain.height > placement.max_height)
            )
            assert not mask.cells[forbidden].any(), object_type

    def test_boats_only_on_deep_water(
        self, rolling_source, requests, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Boats are placed on the lake and nowhere else."""
        result = generate_placement_masks(
            rolling_source, requests, 16.0, 16.0, rules=rules, config=small_config
        )
        boats = result.masks["water_object"].cells
        deep = result.terrain.height < small_config.water.deep_water_height_max
        assert boats.any()
        assert not boats[~deep].any()

    def test_priority_order(
        self, rolling_source, requests, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Requests are processed by ascending priority, ties in request order."""
        recorder = RecordingPostProcessor()
        pipeline = PlacementPipeline(rules, small_config, post_processors=[recorder])
        pipeline.run(rolling_source, requests, 16.0, 16.0)
        assert recorder.seen == [
            "Building",
            "Tree",
            "Water Object",
            "Rock",
            "Vegetation",
        ]


class TestDeterminism:
    """Tests for reproducible output."""

    def test_same_seed_same_masks(
        self, rolling_source, requests, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        a = generate_placement_masks(
            rolling_source, requests, 16.0, 16.0, rules=rules, config=small_config
        )
        b = generate_placement_masks(
            rolling_source, requests, 16.0, 16.0, rules=rules, config=small_config
        )
        for object_type in a.masks:
            np.testing.assert_array_equal(
                a.masks[object_type].cells, b.masks[object_type].cells
            )

    def test_threaded_matches_sequential(
        self, rolling_source, requests, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Running requests on a thread pool changes nothing."""
        threaded_config = small_config.with_overrides(max_workers=4)
        sequential = generate_placement_masks(
            rolling_source, requests, 16.0, 16.0, rules=rules, config=small_config
        )
        threaded = generate_placement_masks(
            rolling_source, requests, 16.0, 16.0, rules=rules, config=threaded_config
        )
        assert set(threaded.masks) == set(sequential.masks)
        for object_type in sequential.masks:
            np.testing.assert_array_equal(
                threaded.masks[object_type].cells, sequential.masks[object_type].cells
            )

    def test_requests_independent(
        self, rolling_source, requests, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """A type's mask does not depend on which other types are requested."""
        full = generate_placement_masks(
            rolling_source, requests, 16.0, 16.0, rules=rules, config=small_config
        )
        trees_only = generate_placement_masks(
            rolling_source,
            [r for r in requests if r.object_type == "tree"],
            16.0,
            16.0,
            rules=rules,
            config=small_config,
        )
        np.testing.assert_array_equal(
            full.masks["tree"].cells, trees_only.masks["tree"].cells
        )

    def test_substreams_differ(self) -> None:
        """Types and repeat requests draw from different streams."""
        tree = request_rng(42, "tree").random(8)
        rock = request_rng(42, "rock").random(8)
        second_tree = request_rng(42, "tree", occurrence=1).random(8)
        assert not np.array_equal(tree, rock)
        assert not np.array_equal(tree, second_tree)
        np.testing.assert_array_equal(tree, request_rng(42, "tree").random(8))


class TestRequestHandling:
    """Tests for unknown, repeated and failing requests."""

    def test_unknown_type_skipped(
        self, rolling_source, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Unknown types produce a warning and no mask; others still run."""
        requests = [
            ObjectRequest(object_type="dragon"),
            ObjectRequest(object_type="rock"),
        ]
        result = generate_placement_masks(
            rolling_source, requests, 16.0, 16.0, rules=rules, config=small_config
        )
        assert "dragon" not in result.masks
        assert "rock" in result.masks
        assert result.warnings == ["No definition found for object type: dragon"]
        assert result.passed

    def test_repeated_type_merged(
        self, rolling_source, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Two requests for one type OR into a single mask."""
        first = ObjectRequest(object_type="rock", density=0.4)
        second = ObjectRequest(
            object_type="rock",
            density=0.4,
            location=AnchorLocation(x=0.8, y=0.2, radius=0.2),
        )
        single = generate_placement_masks(
            rolling_source, [first], 16.0, 16.0, rules=rules, config=small_config
        )
        merged = generate_placement_masks(
            rolling_source, [first, second], 16.0, 16.0, rules=rules, config=small_config
        )
        assert list(merged.masks) == ["rock"]
        assert (merged.masks["rock"].cells >= single.masks["rock"].cells).all()

    def test_invalid_heights_fail_requests(
        self, rolling_heights, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Corrupt height data fails each request without aborting the run."""
        heights = rolling_heights.copy()
        heights[10, 10] = np.nan
        source = ArrayHeightSource(heights, 16.0, 16.0)
        requests = [ObjectRequest(object_type="tree"), ObjectRequest(object_type="rock")]

        result = generate_placement_masks(
            source, requests, 16.0, 16.0, rules=rules, config=small_config
        )
        assert result.masks == {}
        assert set(result.failures) == {"tree", "rock"}
        assert not result.passed

    def test_scalar_callable_source(self, rules: RuleTable) -> None:
        """A plain f(x, y) callable works as a height source."""
        config = PlacementConfig(grid_size=4, samples_per_cell=2)
        result = generate_placement_masks(
            lambda x, y: 0.4,
            [ObjectRequest(object_type="rock", density=1.0)],
            8.0,
            8.0,
            rules=rules,
            config=config,
        )
        np.testing.assert_array_equal(result.masks["rock"].cells, 1)

    def test_custom_post_processor(
        self, rolling_source, requests, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Post-processors can rewrite every mask."""
        pipeline = PlacementPipeline(
            rules,
            small_config,
            post_processors=[lambda mask, definition, context, rng: np.zeros_like(mask)],
        )
        result = pipeline.run(rolling_source, requests, 16.0, 16.0)
        assert all(mask.placed_count == 0 for mask in result.masks.values())

    def test_enforce_spacing(
        self, rolling_source, marker_rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """With spacing enforced no two same-type cells are closer than the rule."""
        config = small_config.with_overrides(enforce_spacing=True)
        result = generate_placement_masks(
            rolling_source,
            [ObjectRequest(object_type="marker", density=1.0)],
            16.0,
            16.0,
            rules=marker_rules,
            config=config,
        )
        assert result.masks["marker"].placed_count > 1
        assert min_spacing(result.masks["marker"].cells) >= 3.0

    def test_enforce_spacing_repeated_type(
        self, make_uniform_source, marker_rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Spacing holds on the merged mask when a type is requested twice."""
        config = small_config.with_overrides(enforce_spacing=True)
        result = generate_placement_masks(
            make_uniform_source(0.5, size=16.0),
            [
                ObjectRequest(object_type="marker", density=1.0),
                ObjectRequest(object_type="marker", density=1.0),
            ],
            16.0,
            16.0,
            rules=marker_rules,
            config=config,
        )
        assert result.masks["marker"].placed_count > 1
        assert min_spacing(result.masks["marker"].cells) >= 3.0

    def test_post_processor_runs_once_per_type(
        self, rolling_source, rules: RuleTable, small_config: PlacementConfig
    ) -> None:
        """Repeated requests share one post-processing pass over the merged mask."""
        calls = []

        def record(mask, definition, context, rng):
            calls.append(definition.name)
            return mask

        requests = [
            ObjectRequest(object_type="rock", density=0.5),
            ObjectRequest(object_type="rock", density=0.5),
            ObjectRequest(object_type="tree", density=0.5),
        ]
        PlacementPipeline(rules, small_config, post_processors=[record]).run(
            rolling_source, requests, 16.0, 16.0
        )
        assert sorted(calls) == sorted(
            [rules.get("rock").name, rules.get("tree").name]
        )


class TestConfigurationErrors:
    """Tests for fatal configuration problems."""

    def test_non_positive_grid_size(self, rules: RuleTable) -> None:
        with pytest.raises(ConfigurationError):
            PlacementPipeline(rules, PlacementConfig(grid_size=0))

    @pytest.mark.parametrize("width,height", [(0.0, 16.0), (16.0, -2.0), (np.inf, 16.0)])
    def test_bad_map_dimensions(
        self, rolling_source, rules: RuleTable, small_config: PlacementConfig, width, height
    ) -> None:
        """Invalid map dimensions abort before terrain analysis."""
        with pytest.raises(ConfigurationError):
            generate_placement_masks(
                rolling_source,
                [ObjectRequest(object_type="tree")],
                width,
                height,
                rules=rules,
                config=small_config,
            )
