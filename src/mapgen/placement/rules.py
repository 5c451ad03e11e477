"""Declarative object placement rules loaded from TOML."""

import math
import tomllib
from functools import lru_cache
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from ..exceptions import ConfigurationError, UnknownObjectTypeError
from ..types import DistributionStrategy

DEFAULT_RULES_PATH = Path(__file__).parent / "data" / "objects.toml"

# Priority for types absent from the table; sorts them last
UNKNOWN_PRIORITY = 999


class PlacementRules(BaseModel, frozen=True):
    """Hard placement constraints for an object type."""

    max_slope: float = Field(default=math.inf, gt=0, description="Maximum cell slope")
    min_height: float = Field(default=0.0, description="Minimum normalized height")
    max_height: float = Field(default=1.0, description="Maximum normalized height")
    avoid_water: bool = False
    require_water: bool = False
    min_distance_to_same_type: float = Field(
        default=0.0, ge=0, description="Spacing between same-type cells, in cells"
    )
    can_overlap: bool = True

    @model_validator(mode="after")
    def _check_height_range(self) -> "PlacementRules":
        if self.min_height > self.max_height:
            raise ValueError(
                f"min_height {self.min_height} exceeds max_height {self.max_height}"
            )
        return self


class SubtypeRules(BaseModel):
    """Custom-rule flags that shape suitability for a subtype.

    Flags the scoring engine does not understand are kept as advisory
    extras so rule files can describe intent for later stages.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    prefer_higher_elevation: bool = False
    prefer_lower_elevation: bool = False
    prefer_steep_slopes: bool = False
    require_flat_area: bool = False
    require_water_access: bool = False
    require_deep_water: bool = False
    require_water_edge: bool = False

    @property
    def advisory_flags(self) -> dict[str, object]:
        """Flags present in the rule file but not used for scoring."""
        return dict(self.model_extra or {})


class ScaleRange(BaseModel, frozen=True):
    """Instance scale range for a subtype."""

    min: float = 1.0
    max: float = 1.0

    @model_validator(mode="after")
    def _check_order(self) -> "ScaleRange":
        if self.min > self.max:
            raise ValueError(f"scale min {self.min} exceeds max {self.max}")
        return self


class SubtypeDefinition(BaseModel, frozen=True):
    """A named variant of an object type."""

    name: str
    scaling: ScaleRange = Field(default_factory=ScaleRange)
    custom_rules: SubtypeRules = Field(default_factory=SubtypeRules)


class ObjectDefinition(BaseModel, frozen=True):
    """Static placement definition for one object type."""

    name: str
    category: str = "misc"
    placement_rules: PlacementRules = Field(default_factory=PlacementRules)
    default_distribution: DistributionStrategy = DistributionStrategy.RANDOM
    priority: int = Field(default=UNKNOWN_PRIORITY, description="Lower is placed first")
    subtypes: dict[str, SubtypeDefinition] = Field(default_factory=dict)

    def subtype_rules(self, subtype: str | None) -> SubtypeRules:
        """Custom rules for a subtype; unknown subtypes get no custom rules."""
        if subtype is not None and subtype in self.subtypes:
            return self.subtypes[subtype].custom_rules
        return SubtypeRules()


class RuleTable(BaseModel, frozen=True):
    """Mapping from object type identifier to its definition."""

    objects: dict[str, ObjectDefinition] = Field(default_factory=dict)

    def __contains__(self, object_type: str) -> bool:
        return object_type in self.objects

    def __len__(self) -> int:
        return len(self.objects)

    def get(self, object_type: str) -> ObjectDefinition:
        """Look up a definition.

        Raises:
            UnknownObjectTypeError: If the type is not in the table.
        """
        try:
            return self.objects[object_type]
        except KeyError:
            raise UnknownObjectTypeError(object_type) from None

    def priority_of(self, object_type: str) -> int:
        definition = self.objects.get(object_type)
        return definition.priority if definition else UNKNOWN_PRIORITY

    def types(self) -> list[str]:
        return list(self.objects)


def parse_rule_table(data: dict) -> RuleTable:
    """Validate raw rule data into a RuleTable.

    Raises:
        ConfigurationError: If the data does not describe a valid table.
    """
    try:
        return RuleTable.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Malformed rule table: {e}") from e


def load_rule_table(path: Path) -> RuleTable:
    """Load a rule table from a TOML file.

    Args:
        path: Path to the TOML rule file.

    Returns:
        Parsed RuleTable.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ConfigurationError: If TOML is malformed or rules are invalid.
    """
    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Malformed rule file {path}: {e}") from e
    return parse_rule_table(data)


@lru_cache(maxsize=1)
def default_rule_table() -> RuleTable:
    """The shipped rule table (trees, rocks, buildings, water objects, vegetation)."""
    return load_rule_table(DEFAULT_RULES_PATH)
