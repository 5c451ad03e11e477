"""Custom exceptions for map generation."""


class PlacementError(Exception):
    """Base exception for placement pipeline errors."""

    pass


class ConfigurationError(PlacementError):
    """Raised when grid, map or rule configuration is unusable.

    Fatal: the pipeline aborts before any terrain work.
    """

    pass


class UnknownObjectTypeError(PlacementError):
    """Raised when a request names a type missing from the rule table."""

    def __init__(self, object_type: str):
        super().__init__(f"No definition found for object type: {object_type}")
        self.object_type = object_type


class DataIntegrityError(PlacementError):
    """Raised when the height source produced unusable samples.

    Fatal for the affected request only.
    """

    pass
