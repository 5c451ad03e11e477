"""Feature-driven height synthesis.

Landforms named in a world description become radial features on a low,
flat base: mountains and hills raise the ground with a ``1 - (d/r)^2``
falloff, flatlands level it and rivers cut it down. Features are applied
in order, so later ones win where they overlap.
"""

import re
from collections.abc import Iterable
from typing import Literal

import numpy as np
import structlog
from numpy.typing import NDArray
from pydantic import BaseModel, Field
from scipy import ndimage

from ..types import DIRECTION_ANCHORS
from .config import HeightSynthesisConfig

logger = structlog.get_logger()

FeatureKind = Literal["mountains", "hills", "flatlands", "river"]

# (keyword, kind, peak height) in application order
LANDFORM_KEYWORDS: tuple[tuple[str, FeatureKind, float], ...] = (
    ("mountain", "mountains", 0.8),
    ("hill", "hills", 0.5),
    ("flat", "flatlands", 0.1),
    ("river", "river", 0.0),
)


class TerrainFeature(BaseModel, frozen=True):
    """One landform at a normalized map location."""

    kind: FeatureKind
    x: float = Field(default=0.5, ge=0.0, le=1.0)
    y: float = Field(default=0.5, ge=0.0, le=1.0)
    height: float = Field(default=0.0, ge=0.0, le=1.0)


def landform_location(prompt: str, keyword: str) -> tuple[float, float]:
    """Anchor of the first compass word mentioned with a landform keyword.

    Defaults to the map center.
    """
    for direction, anchor in DIRECTION_ANCHORS.items():
        pattern = rf"{keyword}.*\b{direction}\b|\b{direction}\b.*{keyword}"
        if re.search(pattern, prompt):
            return anchor
    return DIRECTION_ANCHORS["center"]


def extract_features(prompt: str) -> list[TerrainFeature]:
    """Find the landforms a world description mentions.

    Each landform appears at most once, placed by the compass word
    mentioned alongside it.
    """
    text = prompt.lower()
    features = []
    for keyword, kind, height in LANDFORM_KEYWORDS:
        if keyword not in text:
            continue
        x, y = landform_location(text, keyword)
        features.append(TerrainFeature(kind=kind, x=x, y=y, height=height))

    logger.info("features_extracted", features=[f.kind for f in features])
    return features


def synthesize_heights(
    features: Iterable[TerrainFeature],
    seed: int,
    config: HeightSynthesisConfig | None = None,
) -> NDArray[np.float64]:
    """Render features onto a square height lattice.

    Args:
        features: Landforms in application order.
        seed: Seed for the texture noise.
        config: Synthesis parameters.

    Returns:
        Heights of shape (resolution, resolution), clipped to [0, 1].
        Row 0 is the north edge.
    """
    config = config or HeightSynthesisConfig()
    res = config.resolution

    coords = np.arange(res, dtype=np.float64) / res
    xx, yy = np.meshgrid(coords, coords)
    heights = np.full((res, res), config.base_height)

    for feature in features:
        radius = config.river_radius if feature.kind == "river" else config.feature_radius
        dist = np.sqrt((xx - feature.x) ** 2 + (yy - feature.y) ** 2)
        inside = dist < radius

        if feature.kind == "river":
            heights[inside] = np.minimum(heights[inside], config.river_level)
        elif feature.kind == "flatlands":
            heights[inside] = feature.height
        else:
            influence = 1.0 - (dist[inside] / radius) ** 2
            heights[inside] = np.maximum(heights[inside], feature.height * influence)

    if config.texture_amplitude > 0:
        rng = np.random.default_rng(seed)
        heights += rng.uniform(
            -config.texture_amplitude, config.texture_amplitude, heights.shape
        )

    if config.smoothing_sigma > 0:
        heights = ndimage.gaussian_filter(
            heights, sigma=config.smoothing_sigma, mode="nearest"
        )

    return np.clip(heights, 0.0, 1.0)
