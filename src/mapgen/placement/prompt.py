"""Keyword extraction of object requests from a free-text prompt.

This is plain substring and regex matching, not language understanding.
"""

import re

import structlog

from ..types import DIRECTION_ANCHORS, DistributionStrategy, TerrainAffinity
from .requests import AnchorLocation, ObjectRequest, TerrainLocation
from .rules import RuleTable

logger = structlog.get_logger()

DEFAULT_DENSITY = 0.5
DENSITY_MODIFIERS: list[tuple[tuple[str, ...], float]] = [
    (("dense", "thick"), 0.8),
    (("sparse", "scattered"), 0.3),
    (("few",), 0.2),
]

DIRECTION_RADIUS = 0.3

TERRAIN_KEYWORDS: dict[str, TerrainAffinity] = {
    "mountain": TerrainAffinity.MOUNTAINS,
    "hill": TerrainAffinity.HILLS,
    "river": TerrainAffinity.RIVER,
    "lake": TerrainAffinity.LAKE,
    "forest": TerrainAffinity.FOREST,
    "flat": TerrainAffinity.FLATLANDS,
}

# Checked in order; the first hit wins
SETTLEMENT_KINDS = ("city", "town", "village", "farm")
SETTLEMENT_WORDS = ("village", "town", "building", "house")


def estimate_density(prompt: str, object_type: str) -> float:
    """Density from a modifier directly preceding the object type."""
    for words, density in DENSITY_MODIFIERS:
        if any(f"{word} {object_type}" in prompt for word in words):
            return density
    return DEFAULT_DENSITY


def _mentioned_together(prompt: str, object_type: str, keyword: str) -> bool:
    keyword = re.escape(keyword)
    object_type = re.escape(object_type)
    pattern = rf"{object_type}.*\b{keyword}\b|\b{keyword}\b.*{object_type}"
    return re.search(pattern, prompt) is not None


def estimate_location(
    prompt: str, object_type: str
) -> AnchorLocation | TerrainLocation:
    """Location from a direction or terrain word mentioned with the object type.

    Directions take precedence over terrain words. Without either the
    request covers the whole map.
    """
    for direction, (x, y) in DIRECTION_ANCHORS.items():
        if _mentioned_together(prompt, object_type, direction):
            return AnchorLocation(x=x, y=y, radius=DIRECTION_RADIUS)

    for keyword, affinity in TERRAIN_KEYWORDS.items():
        if _mentioned_together(prompt, object_type, keyword):
            return TerrainLocation(terrain=affinity)

    return AnchorLocation(x=0.5, y=0.5, radius=0.5)


def settlement_kind(prompt: str) -> str:
    for kind in SETTLEMENT_KINDS:
        if kind in prompt:
            return kind
    return "house"


def _request(
    prompt: str, object_type: str, subtype: str, distribution: str
) -> ObjectRequest:
    return ObjectRequest(
        object_type=object_type,
        subtype=subtype,
        density=estimate_density(prompt, object_type),
        location=estimate_location(prompt, object_type),
        distribution=distribution,
    )


def parse_requests(prompt: str, rules: RuleTable) -> list[ObjectRequest]:
    """Extract object requests from a prompt by keyword matching.

    Trees, rocks and settlements are recognized by their common synonyms.
    Any other rule table type named verbatim in the prompt is requested
    with subtype ``"default"`` and its default distribution.

    Args:
        prompt: Free-text world description.
        rules: Rule table supplying the known type names.

    Returns:
        Requests in recognition order, at most one per object type.
    """
    text = prompt.lower()
    requests: list[ObjectRequest] = []

    if "tree" in text or "forest" in text:
        subtype = "pine" if "pine" in text else "oak"
        requests.append(
            _request(text, "tree", subtype, DistributionStrategy.NATURAL.value)
        )

    if "rock" in text or "boulder" in text:
        subtype = "boulder" if "large" in text else "rock"
        requests.append(
            _request(text, "rock", subtype, DistributionStrategy.RANDOM.value)
        )

    if any(word in text for word in SETTLEMENT_WORDS):
        requests.append(
            _request(
                text,
                "building",
                settlement_kind(text),
                DistributionStrategy.CLUSTERED.value,
            )
        )

    seen = {request.object_type for request in requests}
    for object_type in rules.types():
        if object_type in seen or object_type not in text:
            continue
        definition = rules.get(object_type)
        requests.append(
            _request(
                text, object_type, "default", definition.default_distribution.value
            )
        )

    logger.info(
        "prompt_parsed",
        requests=[str(request) for request in requests],
    )
    return requests
