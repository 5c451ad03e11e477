"""Placement pipeline configuration models."""

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from ..exceptions import ConfigurationError


class ClassificationConfig(BaseModel):
    """Terrain feature classification thresholds."""

    flat_slope_max: float = Field(
        default=0.05, description="Slope below this is flat"
    )
    steep_slope_min: float = Field(
        default=0.3, description="Slope above this is steep"
    )
    lowland_height_max: float = Field(
        default=0.2, description="Height below this is lowland"
    )
    midland_height_max: float = Field(
        default=0.6, description="Height below this is midland, else highland"
    )


class NaturalDistributionConfig(BaseModel):
    """Cellular automaton parameters for the natural strategy."""

    seed_threshold: float = Field(
        default=0.3, description="Suitability above which seeds may be drawn"
    )
    birth_factor: float = Field(
        default=0.7, description="Birth requires suitability > seed_threshold * this"
    )
    iterations: int = Field(default=2, ge=0, description="Refinement generations")
    survive_min: int = Field(default=2, description="Min active neighbors to survive")
    survive_max: int = Field(default=6, description="Max active neighbors to survive")
    birth_min: int = Field(default=3, description="Min active neighbors for birth")
    birth_max: int = Field(default=4, description="Max active neighbors for birth")

    @property
    def birth_threshold(self) -> float:
        return self.seed_threshold * self.birth_factor


class ClusteredDistributionConfig(BaseModel):
    """Cluster center selection parameters."""

    center_threshold: float = Field(
        default=0.6, description="Suitability above which a cell can be a center"
    )
    max_clusters: int = Field(default=5, ge=0, description="Maximum cluster centers")
    radius_fraction: float = Field(
        default=0.10, gt=0, description="Cluster radius as a fraction of map width"
    )


class WaterConfig(BaseModel):
    """Absolute height thresholds for water detection."""

    water_height_max: float = Field(default=0.1, description="Height below this is water")
    deep_water_height_max: float = Field(
        default=0.05, description="Height below this is deep water"
    )


class PlacementConfig(BaseModel):
    """Complete object placement configuration."""

    seed: int = Field(default=42, ge=0, description="Random seed for reproducibility")
    grid_size: int = Field(default=1024, description="Cells per side of the grid")
    samples_per_cell: int = Field(
        default=5, description="Height sub-samples per cell side"
    )

    classification: ClassificationConfig = Field(default_factory=ClassificationConfig)
    natural: NaturalDistributionConfig = Field(
        default_factory=NaturalDistributionConfig
    )
    clustered: ClusteredDistributionConfig = Field(
        default_factory=ClusteredDistributionConfig
    )
    water: WaterConfig = Field(default_factory=WaterConfig)

    enforce_spacing: bool = Field(
        default=False,
        description="Thin masks to honor min_distance_to_same_type",
    )
    max_workers: int = Field(
        default=1, description="Threads for independent requests (1 = sequential)"
    )

    def with_overrides(self, **overrides: object) -> "PlacementConfig":
        """Copy with top-level fields replaced, validated like a loaded config.

        Raises:
            ConfigurationError: If an override is invalid.
        """
        try:
            return PlacementConfig.model_validate({**self.model_dump(), **overrides})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid config override: {e}") from e

    def validate_for_run(self) -> None:
        """Check values that would make a run meaningless.

        Raises:
            ConfigurationError: If grid size or sampling is non-positive.
        """
        if self.grid_size <= 0:
            raise ConfigurationError(f"grid_size must be positive, got {self.grid_size}")
        if self.samples_per_cell <= 0:
            raise ConfigurationError(
                f"samples_per_cell must be positive, got {self.samples_per_cell}"
            )
        if self.max_workers <= 0:
            raise ConfigurationError(
                f"max_workers must be positive, got {self.max_workers}"
            )


def load_config(config_path: Path) -> PlacementConfig:
    """Load placement configuration from a TOML file.

    Args:
        config_path: Path to the TOML config file.

    Returns:
        Parsed PlacementConfig.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ConfigurationError: If TOML is malformed or values are invalid.
    """
    with open(config_path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Malformed config {config_path}: {e}") from e
    try:
        return PlacementConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid config {config_path}: {e}") from e
