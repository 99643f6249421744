"""
FeatureSearchAggregator — named places near a point, a path or inside a polygon.

Responsibilities:
- Build one regional query around the search area.
- Dispatch it through the shared RateLimitedQueue.
- Keep only the candidates that pass the containment predicate.
- Deduplicate candidates and enrich the survivors with elevation.

A search degrades to fewer (or no) results on provider trouble; it does
not raise for network, HTTP or parse failures.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Mapping, Sequence

from .api.features import FeatureCandidate, build_overpass_query, fetch_features, parse_elements
from .const import DEFAULT_SEARCH_RADIUS_KM, OVERPASS_API_URL, REQUEST_ATTEMPTS, REQUEST_TIMEOUT
from .elevation import ElevationResolver
from .geokey import GeoKeyCodec
from .geometry import bounding_box, distance_to_path, point_in_polygon
from .models import Coordinate, SearchResult
from .request_queue import RateLimitedQueue

_LOGGER = logging.getLogger(__name__)


class FeatureSearchAggregator:
    """Searches the feature provider and reconciles its answer into SearchResults."""

    def __init__(
        self,
        queue: RateLimitedQueue,
        elevation_resolver: ElevationResolver,
        url: str = OVERPASS_API_URL,
        codec: GeoKeyCodec | None = None,
        timeout: int = REQUEST_TIMEOUT,
        max_attempts: int = REQUEST_ATTEMPTS,
    ) -> None:
        self._queue = queue
        self._elevation = elevation_resolver
        self._url = url
        self._codec = codec or GeoKeyCodec()
        self._timeout = timeout
        self._max_attempts = max_attempts

    async def search(
        self,
        path: Sequence[Coordinate],
        radius_km: float = DEFAULT_SEARCH_RADIUS_KM,
        buffer_polygon: Mapping[str, Any] | None = None,
    ) -> list[SearchResult]:
        """
        Return named places within radius_km of path.

        A one-point path is a point search; longer paths are corridor
        searches, measured segment by segment. When buffer_polygon (GeoJSON)
        is given it replaces the distance test. Results keep the order in
        which they were first seen: nodes, then ways.
        """
        if not path:
            return []

        bbox = bounding_box(path, radius_km)
        query = build_overpass_query(bbox, corridor=len(path) > 1)

        raw_json = await self._dispatch(query)
        if raw_json is None:
            return []

        results: dict[tuple[str, str], SearchResult] = {}
        for candidate in parse_elements(raw_json):
            if not self.contains(candidate.coordinates, path, radius_km, buffer_polygon):
                continue
            key = (candidate.name, self._codec.primary_key(candidate.coordinates))
            if key not in results:
                results[key] = self._to_result(candidate)

        _LOGGER.debug("Feature search kept %s results", len(results))
        if not results:
            return []
        return await self._attach_elevations(list(results.values()))

    @staticmethod
    def contains(
        coord: Coordinate,
        path: Sequence[Coordinate],
        radius_km: float,
        buffer_polygon: Mapping[str, Any] | None = None,
    ) -> bool:
        """Containment predicate: inside buffer_polygon, else within radius_km of path."""
        if buffer_polygon is not None:
            return point_in_polygon(coord, buffer_polygon)
        return distance_to_path(coord, path) <= radius_km

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _dispatch(self, query: str) -> dict | None:
        """Run the query through the shared queue; None on any failure."""
        try:
            fut = await self._queue.submit(
                lambda: fetch_features(
                    query, self._url, timeout=self._timeout, max_attempts=self._max_attempts
                )
            )
            return await fut
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Error in feature search: %s: %s", type(exc).__name__, exc)
            return None

    @staticmethod
    def _to_result(candidate: FeatureCandidate) -> SearchResult:
        return SearchResult(
            primary_label=candidate.name,
            secondary_label=candidate.kind,
            coordinates=candidate.coordinates,
            kind=candidate.kind,
        )

    async def _attach_elevations(self, results: list[SearchResult]) -> list[SearchResult]:
        elevations = await self._elevation.resolve([r.coordinates for r in results])
        return [
            dataclasses.replace(r, elevation=elevations[r.coordinates])
            if r.coordinates in elevations else r
            for r in results
        ]
