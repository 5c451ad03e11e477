"""Height sources for the placement pipeline.

These sources load existing heightmaps, wrap height functions, or
synthesize terrain from the landforms a world description names.
"""

from .config import HeightSynthesisConfig
from .features import TerrainFeature, extract_features, synthesize_heights
from .sources import (
    ArrayHeightSource,
    FeatureHeightSource,
    FunctionHeightSource,
    HeightSource,
    as_height_source,
)

__all__ = [
    "ArrayHeightSource",
    "FeatureHeightSource",
    "FunctionHeightSource",
    "HeightSource",
    "HeightSynthesisConfig",
    "TerrainFeature",
    "as_height_source",
    "extract_features",
    "synthesize_heights",
]
