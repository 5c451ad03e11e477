"""Normalized object requests consumed by the placement pipeline."""

import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from ..exceptions import ConfigurationError
from ..types import TerrainAffinity


class AnchorLocation(BaseModel, frozen=True, extra="forbid"):
    """Anchor point and radius in normalized map coordinates [0, 1]."""

    x: float = 0.5
    y: float = 0.5
    radius: float = Field(default=0.5, ge=0)


class TerrainLocation(BaseModel, frozen=True, extra="forbid"):
    """Affinity for cells matching a terrain tag."""

    terrain: TerrainAffinity


class ObjectRequest(BaseModel, frozen=True):
    """One placement request: what to place, how much, and where."""

    object_type: str
    subtype: str | None = None
    density: float = Field(default=0.5, ge=0.0, le=1.0)
    location: TerrainLocation | AnchorLocation | None = None
    # None falls back to the object type's default strategy
    distribution: str | None = None

    def __str__(self) -> str:
        subtype = f"/{self.subtype}" if self.subtype else ""
        return f"{self.object_type}{subtype}"


class RequestFile(BaseModel):
    """Requests as stored in a TOML file under ``[[requests]]``."""

    requests: list[ObjectRequest] = Field(default_factory=list)


def load_requests(path: Path) -> list[ObjectRequest]:
    """Load object requests from a TOML file.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ConfigurationError: If the file is malformed.
    """
    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Malformed request file {path}: {e}") from e
    try:
        return RequestFile.model_validate(data).requests
    except ValidationError as e:
        raise ConfigurationError(f"Invalid request file {path}: {e}") from e
