"""
Low-level batch elevation lookup against the Open-Elevation API.

Responsible for:
- Posting a batch of coordinates to the lookup endpoint
- Returning the (lat, lon, elevation) triples echoed back by the provider
"""
import logging
import math

from ..const import ELEVATION_API_URL, REQUEST_ATTEMPTS, REQUEST_TIMEOUT
from ..models import Coordinate
from ..requests import make_request

_LOGGER = logging.getLogger(__name__)


def _parse_result(result) -> tuple[float, float, float | None] | None:
    try:
        lat = float(result["latitude"])
        lon = float(result["longitude"])
    except (KeyError, TypeError, ValueError):
        return None
    elevation = result.get("elevation")
    if isinstance(elevation, bool) or not isinstance(elevation, (int, float)) or not math.isfinite(elevation):
        elevation = None
    return lat, lon, elevation


async def fetch_elevation_batch(
    coordinates: list[Coordinate],
    url: str = ELEVATION_API_URL,
    timeout: int = REQUEST_TIMEOUT,
    max_attempts: int = REQUEST_ATTEMPTS,
) -> list[tuple[float, float, float | None]]:
    """
    Look up elevations (metres) for a batch of coordinates.

    The provider echoes every coordinate back, possibly at a different
    precision; elevation is None where it has no data. A malformed body
    yields an empty list. HTTP errors propagate, in particular
    PayloadTooLargeError when the batch is too big.

    Corresponding CURL command:
    curl -X 'POST' 'https://api.open-elevation.com/api/v1/lookup' \
         -H 'Content-Type: application/json' \
         -d '{"locations": [{"latitude": 48.85, "longitude": 2.35}]}'
    """
    if not coordinates:
        return []

    payload = {
        "locations": [{"latitude": c.lat, "longitude": c.lon} for c in coordinates]
    }
    headers = {"accept": "application/json"}
    raw_json = await make_request(
        "POST", url, headers, payload=payload, timeout=timeout, max_attempts=max_attempts
    )

    if not isinstance(raw_json, dict) or not isinstance(raw_json.get("results"), list):
        _LOGGER.error("Unexpected elevation response format: %s", str(raw_json)[:200])
        return []

    parsed = [_parse_result(result) for result in raw_json["results"] if isinstance(result, dict)]
    return [p for p in parsed if p is not None]
