"""Tests for object request models and request files."""

import pytest
from pydantic import ValidationError

from mapgen.exceptions import ConfigurationError
from mapgen.placement.requests import (
    AnchorLocation,
    ObjectRequest,
    TerrainLocation,
    load_requests,
)
from mapgen.types import TerrainAffinity


class TestObjectRequest:
    """Tests for request validation."""

    def test_defaults(self) -> None:
        """Density defaults to medium; location and strategy are optional."""
        request = ObjectRequest(object_type="tree")
        assert request.density == 0.5
        assert request.location is None
        assert request.distribution is None

    @pytest.mark.parametrize("density", [-0.1, 1.5])
    def test_density_bounds(self, density: float) -> None:
        """Density outside [0, 1] is rejected."""
        with pytest.raises(ValidationError):
            ObjectRequest(object_type="tree", density=density)

    def test_negative_radius_rejected(self) -> None:
        with pytest.raises(ValidationError):
            AnchorLocation(x=0.5, y=0.5, radius=-0.1)

    def test_location_from_dict(self) -> None:
        """Dict locations resolve to anchor or terrain by their keys."""
        anchored = ObjectRequest.model_validate(
            {"object_type": "rock", "location": {"x": 0.1, "y": 0.9, "radius": 0.2}}
        )
        tagged = ObjectRequest.model_validate(
            {"object_type": "rock", "location": {"terrain": "mountains"}}
        )
        assert isinstance(anchored.location, AnchorLocation)
        assert anchored.location.radius == 0.2
        assert isinstance(tagged.location, TerrainLocation)
        assert tagged.location.terrain == TerrainAffinity.MOUNTAINS

    def test_str(self) -> None:
        assert str(ObjectRequest(object_type="tree", subtype="pine")) == "tree/pine"
        assert str(ObjectRequest(object_type="tree")) == "tree"


class TestLoadRequests:
    """Tests for TOML request files."""

    def test_load(self, tmp_path) -> None:
        """Requests load in file order."""
        path = tmp_path / "requests.toml"
        path.write_text(
            "[[requests]]\n"
            'object_type = "tree"\n'
            'subtype = "pine"\n'
            "density = 0.8\n"
            'location = { terrain = "forest" }\n'
            "\n"
            "[[requests]]\n"
            'object_type = "building"\n'
            'distribution = "clustered"\n'
            "location = { x = 0.2, y = 0.3, radius = 0.1 }\n"
        )
        requests = load_requests(path)
        assert [r.object_type for r in requests] == ["tree", "building"]
        assert requests[0].location.terrain == TerrainAffinity.FOREST
        assert requests[1].location.x == 0.2

    def test_invalid_entry(self, tmp_path) -> None:
        """Schema errors surface as ConfigurationError."""
        path = tmp_path / "requests.toml"
        path.write_text('[[requests]]\nobject_type = "tree"\ndensity = 3.0\n')
        with pytest.raises(ConfigurationError):
            load_requests(path)

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_requests(tmp_path / "missing.toml")
