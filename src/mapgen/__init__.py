"""Map generation: height sources and object placement masks."""

from .exceptions import (
    ConfigurationError,
    DataIntegrityError,
    PlacementError,
    UnknownObjectTypeError,
)

__all__ = [
    "ConfigurationError",
    "DataIntegrityError",
    "PlacementError",
    "UnknownObjectTypeError",
]
