"""
Regional feature search against the Overpass API.

Responsible for:
- Building the Overpass QL query for a bounding box
- Posting the query
- Parsing node and way elements into FeatureCandidate instances
"""
import dataclasses
import logging
import math

from ..const import OVERPASS_API_URL, REQUEST_ATTEMPTS, REQUEST_TIMEOUT, TYPE_TAG_PRIORITY
from ..models import BoundingBox, Coordinate
from ..requests import make_request

_LOGGER = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class FeatureCandidate:
    """A named element of the feature provider before geometric filtering."""

    name: str
    coordinates: Coordinate
    kind: str | None
    element_type: str


def build_overpass_query(bbox: BoundingBox, corridor: bool = False) -> str:
    """
    Build the Overpass QL query for every named element inside bbox.

    A point search (corridor=False) keeps every named element. A corridor
    search also requires a ``place`` tag, so that a long route does not
    return every shop and bench along the way.
    """
    selector = "[name][place]" if corridor else "[name]"
    return (
        f"[out:json][bbox:{bbox.min_lat},{bbox.min_lon},{bbox.max_lat},{bbox.max_lon}];\n"
        "(\n"
        f"  node{selector};\n"
        f"  way{selector};\n"
        f"  relation{selector};\n"
        ");\n"
        "out center;\n"
    )


def classify_tags(tags: dict) -> str | None:
    """Value of the first tag present from TYPE_TAG_PRIORITY, or None."""
    for tag in TYPE_TAG_PRIORITY:
        value = tags.get(tag)
        if value and isinstance(value, str):
            return value
    return None


def _element_coordinates(element: dict) -> Coordinate | None:
    """Nodes carry lat/lon directly; ways carry a precomputed center."""
    source = element if element.get("type") == "node" else element.get("center")
    if not isinstance(source, dict):
        return None
    try:
        lat = float(source["lat"])
        lon = float(source["lon"])
    except (KeyError, TypeError, ValueError):
        return None
    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    return Coordinate(lat=lat, lon=lon)


def _parse_element(element: dict) -> FeatureCandidate | None:
    """Map a single raw element onto a FeatureCandidate, or None if unusable."""
    tags = element.get("tags")
    if not isinstance(tags, dict):
        _LOGGER.debug("Skipping element without a tag mapping: %s", str(element)[:200])
        return None
    name = tags.get("name")
    if not name or not isinstance(name, str):
        return None
    coordinates = _element_coordinates(element)
    if coordinates is None:
        return None
    return FeatureCandidate(
        name=name,
        coordinates=coordinates,
        kind=classify_tags(tags),
        element_type=element["type"],
    )


def parse_elements(raw_json) -> list[FeatureCandidate]:
    """
    Parse an Overpass JSON response.

    All nodes come first, then all ways. Relations are ignored. Returns an
    empty list if the payload does not have the expected shape.
    """
    if not isinstance(raw_json, dict) or not isinstance(raw_json.get("elements"), list):
        _LOGGER.error("Unexpected feature search response format: %s", str(raw_json)[:200])
        return []

    elements = [e for e in raw_json["elements"] if isinstance(e, dict)]
    candidates = []
    for element_type in ("node", "way"):
        for element in elements:
            if element.get("type") != element_type:
                continue
            candidate = _parse_element(element)
            if candidate is not None:
                candidates.append(candidate)
    return candidates


async def fetch_features(
    query: str,
    url: str = OVERPASS_API_URL,
    timeout: int = REQUEST_TIMEOUT,
    max_attempts: int = REQUEST_ATTEMPTS,
) -> dict:
    """
    Post an Overpass QL query and return the decoded JSON response.

    Errors are not handled here; the aggregator decides how to degrade.

    Corresponding CURL command:
    curl -X 'POST' 'https://overpass-api.de/api/interpreter' --data-binary '<QUERY>'
    """
    headers = {"accept": "application/json", "Content-Type": "application/osm3s"}
    return await make_request(
        "POST", url, headers, data=query, timeout=timeout, max_attempts=max_attempts
    )
