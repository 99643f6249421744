"""
Text completion search against the Geoportail geocoding API.

Responsible for:
- Sending the typed query to the completion endpoint
- Mapping each candidate onto a SearchResult
- Raising SearchError when the provider is unreachable or rejects the query
"""
import asyncio
import logging

import aiohttp

from ..const import COMPLETION_API_URL, DEFAULT_SEARCH_LIMIT, REQUEST_ATTEMPTS, REQUEST_TIMEOUT
from ..models import Coordinate, SearchResult
from ..requests import ApiResponseError, make_request

_LOGGER = logging.getLogger(__name__)


class SearchError(Exception):
    """The completion provider could not be reached or refused the request."""


def _parse_candidate(candidate: dict) -> SearchResult | None:
    """Map a single raw completion candidate onto a SearchResult."""
    try:
        coordinates = Coordinate(lat=float(candidate["y"]), lon=float(candidate["x"]))
        label = candidate["fulltext"]
    except (KeyError, TypeError, ValueError):
        _LOGGER.debug("Skipping malformed completion candidate: %s", candidate)
        return None
    kind = candidate.get("kind") or None
    return SearchResult(
        primary_label=label,
        secondary_label=kind,
        coordinates=coordinates,
        kind=kind,
    )


async def fetch_completions(
    query: str,
    limit: int = DEFAULT_SEARCH_LIMIT,
    url: str = COMPLETION_API_URL,
    timeout: int = REQUEST_TIMEOUT,
    max_attempts: int = REQUEST_ATTEMPTS,
) -> list[SearchResult]:
    """
    Search for addresses and places matching query.

    Returns an empty list for a blank query (no request is made), for a
    malformed response and for provider-side (5xx) failures.

    Corresponding CURL command:
    curl -X 'GET' 'https://data.geopf.fr/geocodage/completion?text=<QUERY>&limit=8'

    Raises:
        SearchError: if the provider is unreachable or answers 4xx
    """
    if not query or not query.strip():
        return []

    params = {"text": query, "limit": str(limit)}
    headers = {"accept": "application/json"}
    try:
        raw_json = await make_request(
            "GET", url, headers, params=params, timeout=timeout, max_attempts=max_attempts
        )
    except ApiResponseError as e:
        if 400 <= e.status < 500:
            raise SearchError(f"Failed to search address: {e}") from e
        _LOGGER.warning("Completion provider error for %r: %s", query, e)
        return []
    except (asyncio.TimeoutError, TimeoutError) as e:
        raise SearchError("Failed to search address: provider timed out") from e
    except aiohttp.ClientError as e:
        raise SearchError(f"Failed to search address: {e}") from e
    except ValueError as e:
        _LOGGER.error("Unreadable completion response for %r: %s", query, e)
        return []

    if not isinstance(raw_json, dict) or not isinstance(raw_json.get("results"), list):
        _LOGGER.warning("Unexpected completion response format: %s", raw_json)
        return []

    parsed = [_parse_candidate(candidate) for candidate in raw_json["results"]]
    return [r for r in parsed if r is not None]
