"""Height synthesis configuration."""

from pydantic import BaseModel, Field


class HeightSynthesisConfig(BaseModel):
    """Parameters for building a heightmap from landform features."""

    resolution: int = Field(
        default=1024, gt=0, description="Samples per side of the backing lattice"
    )
    base_height: float = Field(
        default=0.1, ge=0.0, le=1.0, description="Height where no feature reaches"
    )
    feature_radius: float = Field(
        default=0.3, gt=0.0, description="Reach of raised features, normalized to map size"
    )
    river_radius: float = Field(
        default=0.02, gt=0.0, description="Reach of a river feature, normalized"
    )
    river_level: float = Field(
        default=0.05, ge=0.0, le=1.0, description="Ceiling height inside a river"
    )
    texture_amplitude: float = Field(
        default=0.025, ge=0.0, description="Half-width of the uniform texture noise"
    )
    smoothing_sigma: float = Field(
        default=0.0, ge=0.0, description="Gaussian smoothing in samples (0 disables)"
    )
