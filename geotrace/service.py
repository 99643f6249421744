"""
GeoSearchService — owns the shared request queue and the search components.

Responsibilities:
- Build one RateLimitedQueue per service and inject it into every component
  that calls a provider, so the rate limit holds across concurrent searches.
- Expose text completion, feature search and elevation lookup.
"""
from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from .aggregator import FeatureSearchAggregator
from .api.completion import fetch_completions
from .config import GeoTraceConfig, load_config
from .const import DEFAULT_SEARCH_LIMIT, DEFAULT_SEARCH_RADIUS_KM
from .elevation import ElevationResolver
from .models import Coordinate, SearchResult
from .request_queue import RateLimitedQueue

_LOGGER = logging.getLogger(__name__)


class GeoSearchService:
    """Entry point for all provider-backed operations."""

    def __init__(self, config: GeoTraceConfig | None = None) -> None:
        self.config = config or load_config()
        self.queue = RateLimitedQueue(min_delay=self.config.min_request_delay)
        self.elevation = ElevationResolver(
            self.queue,
            url=self.config.elevation_url,
            max_depth=self.config.elevation_max_split_depth,
            timeout=self.config.request_timeout,
            max_attempts=self.config.request_attempts,
        )
        self.features = FeatureSearchAggregator(
            self.queue,
            self.elevation,
            url=self.config.overpass_url,
            timeout=self.config.request_timeout,
            max_attempts=self.config.request_attempts,
        )

    async def search_address(self, query: str, limit: int = DEFAULT_SEARCH_LIMIT) -> list[SearchResult]:
        """
        Text completion search.

        Raises:
            SearchError: if the provider is unreachable or rejects the query
        """
        if not query or not query.strip():
            return []
        fut = await self.queue.submit(
            lambda: fetch_completions(
                query,
                limit,
                url=self.config.completion_url,
                timeout=self.config.request_timeout,
                max_attempts=self.config.request_attempts,
            )
        )
        return await fut

    async def search_near_path(
        self,
        path: Sequence[Coordinate],
        radius_km: float = DEFAULT_SEARCH_RADIUS_KM,
        buffer_polygon: Mapping[str, Any] | None = None,
    ) -> list[SearchResult]:
        return await self.features.search(path, radius_km, buffer_polygon)

    async def resolve_elevations(self, coordinates: Sequence[Coordinate]) -> dict[Coordinate, int]:
        return await self.elevation.resolve(coordinates)

    async def shutdown(self) -> None:
        await self.queue.shutdown()
