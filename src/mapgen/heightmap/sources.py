"""Height sources consumed by the terrain analyzer.

A height source is anything with a ``height_at(x, y)`` method that accepts
map coordinates (scalars or numpy arrays of equal shape) and returns
heights normalized to [0, 1]. Sources are expected to be total over the
map extent; the analyzer validates what they return.
"""

from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Protocol, runtime_checkable

import numpy as np
import structlog
from numpy.typing import ArrayLike, NDArray
from PIL import Image

from .config import HeightSynthesisConfig
from .features import TerrainFeature, extract_features, synthesize_heights

logger = structlog.get_logger()


@runtime_checkable
class HeightSource(Protocol):
    """Continuous height field over the map extent."""

    def height_at(self, x: ArrayLike, y: ArrayLike) -> NDArray[np.float64] | float:
        ...


class ArrayHeightSource:
    """Height source backed by a 2D array stretched over the map.

    Samples use nearest-cell lookup; coordinates outside the map clamp to
    the edge so the source stays total.
    """

    def __init__(self, heights: ArrayLike, width: float, height: float):
        data = np.asarray(heights, dtype=np.float64)
        if data.ndim != 2 or data.size == 0:
            raise ValueError(f"Height array must be 2D and non-empty, got shape {data.shape}")
        self.heights = data
        self.width = float(width)
        self.height = float(height)

    @property
    def shape(self) -> tuple[int, int]:
        return self.heights.shape

    def height_at(self, x: ArrayLike, y: ArrayLike) -> NDArray[np.float64] | float:
        rows, cols = self.heights.shape
        xs = np.asarray(x, dtype=np.float64)
        ys = np.asarray(y, dtype=np.float64)

        col = np.floor(xs / self.width * cols)
        row = np.floor(ys / self.height * rows)
        # NaN coordinates propagate as NaN heights
        nan = np.isnan(col) | np.isnan(row)
        col = np.clip(np.nan_to_num(col), 0, cols - 1).astype(np.intp)
        row = np.clip(np.nan_to_num(row), 0, rows - 1).astype(np.intp)

        result = np.where(nan, np.nan, self.heights[row, col])
        if result.ndim == 0:
            return float(result)
        return result

    @classmethod
    def from_image(
        cls, path: Path, width: float | None = None, height: float | None = None
    ) -> "ArrayHeightSource":
        """Load a grayscale heightmap image.

        8-bit images are scaled by 255, 16-bit images by 65535. Map size
        defaults to the image size in pixels.

        Args:
            path: Image path.
            width: Map width (default: image width).
            height: Map height (default: image height).

        Returns:
            ArrayHeightSource over the image.
        """
        with Image.open(path) as img:
            if img.mode in ("I;16", "I;16B", "I;16L", "I"):
                data = np.asarray(img, dtype=np.float64) / 65535.0
            else:
                data = np.asarray(img.convert("L"), dtype=np.float64) / 255.0

        rows, cols = data.shape
        logger.info("heightmap_loaded", path=str(path), width=cols, height=rows)
        return cls(
            data,
            width if width is not None else cols,
            height if height is not None else rows,
        )

    @classmethod
    def from_npy(
        cls, path: Path, width: float | None = None, height: float | None = None
    ) -> "ArrayHeightSource":
        """Load a heightmap stored as a 2D ``.npy`` array of [0, 1] values."""
        data = np.load(path)
        rows, cols = data.shape
        logger.info("heightmap_loaded", path=str(path), width=cols, height=rows)
        return cls(
            data,
            width if width is not None else cols,
            height if height is not None else rows,
        )


class FeatureHeightSource(ArrayHeightSource):
    """Heightmap synthesized from landform features, normalized to [0, 1].

    The lattice of ``config.resolution`` samples per side is stretched over
    the map, so feature locations are fractions of the map size.
    """

    def __init__(
        self,
        features: Iterable[TerrainFeature],
        width: float,
        height: float,
        seed: int,
        config: HeightSynthesisConfig | None = None,
    ):
        config = config or HeightSynthesisConfig()
        self.features = list(features)
        super().__init__(synthesize_heights(self.features, seed, config), width, height)
        self.seed = seed
        logger.debug(
            "feature_heightmap_built",
            seed=seed,
            features=len(self.features),
            resolution=config.resolution,
        )

    @classmethod
    def from_prompt(
        cls,
        prompt: str,
        width: float,
        height: float,
        seed: int,
        config: HeightSynthesisConfig | None = None,
    ) -> "FeatureHeightSource":
        """Synthesize terrain for the landforms a description mentions."""
        return cls(extract_features(prompt), width, height, seed, config)


class FunctionHeightSource:
    """Adapts a scalar ``f(x, y) -> height`` callable to the array protocol."""

    def __init__(self, func: Callable[[float, float], float]):
        self.func = func
        self._vectorized = np.vectorize(func, otypes=[np.float64])

    def height_at(self, x: ArrayLike, y: ArrayLike) -> NDArray[np.float64] | float:
        result = self._vectorized(x, y)
        if np.ndim(result) == 0:
            return float(result)
        return result


def as_height_source(
    source: HeightSource | Callable[[float, float], float],
) -> HeightSource:
    """Accept either a height source or a plain scalar callable."""
    if isinstance(source, HeightSource):
        return source
    if callable(source):
        return FunctionHeightSource(source)
    raise TypeError(f"Not a height source: {source!r}")
