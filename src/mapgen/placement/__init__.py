"""Object placement pipeline.

Turns a heightmap and a list of object requests into one binary placement
mask per object type: grid construction, two-pass terrain analysis,
per-request suitability scoring and mask synthesis with random, natural,
clustered and water distribution strategies.
"""

from .config import PlacementConfig, load_config
from .grid import Cell, Grid
from .persistence import load_masks, save_mask_images, save_masks
from .pipeline import (
    PlacementMask,
    PlacementPipeline,
    PlacementResult,
    generate_placement_masks,
)
from .prompt import parse_requests
from .requests import AnchorLocation, ObjectRequest, TerrainLocation, load_requests
from .rules import ObjectDefinition, RuleTable, default_rule_table, load_rule_table
from .spacing import SpacingPostProcessor
from .suitability import compute_suitability
from .terrain import TerrainMap, analyze_terrain

__all__ = [
    "AnchorLocation",
    "Cell",
    "Grid",
    "ObjectDefinition",
    "ObjectRequest",
    "PlacementConfig",
    "PlacementMask",
    "PlacementPipeline",
    "PlacementResult",
    "RuleTable",
    "SpacingPostProcessor",
    "TerrainLocation",
    "TerrainMap",
    "analyze_terrain",
    "compute_suitability",
    "default_rule_table",
    "generate_placement_masks",
    "load_config",
    "load_masks",
    "load_requests",
    "load_rule_table",
    "parse_requests",
    "save_mask_images",
    "save_masks",
]
