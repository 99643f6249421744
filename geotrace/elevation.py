"""
ElevationResolver — best-effort batch elevation lookup.

Responsibilities:
- Send one batch lookup for all coordinates through the shared queue.
- Bisect batches the provider rejects as too large, a bounded number of times.
- Match the provider's echoed coordinates back to the inputs at several precisions.

Never raises for provider failures: coordinates that could not be resolved
are simply missing from the result.
"""
from __future__ import annotations

import asyncio
import logging
import math
from typing import Sequence

from .api.elevation import fetch_elevation_batch
from .const import ELEVATION_API_URL, ELEVATION_MAX_SPLIT_DEPTH, REQUEST_ATTEMPTS, REQUEST_TIMEOUT
from .geokey import CoordinateIndex, GeoKeyCodec
from .models import Coordinate
from .request_queue import RateLimitedQueue
from .requests import PayloadTooLargeError

_LOGGER = logging.getLogger(__name__)


class ElevationResolver:
    """
    Resolves elevations for many coordinates at once.

    Oversized batches are split level by level: every batch at one depth is
    sent concurrently, the ones answered with 413 are halved into the next
    level, and nothing is sent once max_depth levels have been tried. One
    original batch therefore costs at most 2**max_depth - 1 requests.
    """

    def __init__(
        self,
        queue: RateLimitedQueue,
        url: str = ELEVATION_API_URL,
        max_depth: int = ELEVATION_MAX_SPLIT_DEPTH,
        codec: GeoKeyCodec | None = None,
        timeout: int = REQUEST_TIMEOUT,
        max_attempts: int = REQUEST_ATTEMPTS,
    ) -> None:
        self._queue = queue
        self._url = url
        self._max_depth = max_depth
        self._codec = codec or GeoKeyCodec()
        self._timeout = timeout
        self._max_attempts = max_attempts

    async def resolve(self, coordinates: Sequence[Coordinate]) -> dict[Coordinate, int]:
        """
        Return coordinate → elevation in whole metres for every coordinate
        the provider could answer for.
        """
        elevations: dict[Coordinate, int] = {}
        if not coordinates:
            return elevations

        index = self._codec.build_index(coordinates)
        pending: list[list[Coordinate]] = [list(coordinates)]
        depth = 0

        while pending and depth < self._max_depth:
            outcomes = await asyncio.gather(
                *[self._lookup(batch) for batch in pending],
                return_exceptions=True,
            )
            next_level: list[list[Coordinate]] = []
            for batch, outcome in zip(pending, outcomes):
                if isinstance(outcome, PayloadTooLargeError):
                    _LOGGER.warning(
                        "Elevation payload too large (%s coordinates), splitting (level %s/%s)",
                        len(batch), depth + 1, self._max_depth,
                    )
                    mid = math.ceil(len(batch) / 2)
                    next_level.extend(half for half in (batch[:mid], batch[mid:]) if half)
                elif isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                elif isinstance(outcome, BaseException):
                    _LOGGER.warning(
                        "Elevation lookup failed for %s coordinates: %s: %s",
                        len(batch), type(outcome).__name__, outcome,
                    )
                else:
                    self._correlate(outcome, index, elevations)
            pending = next_level
            depth += 1

        if pending:
            _LOGGER.warning(
                "Giving up on elevation for %s coordinates after %s split levels",
                sum(len(batch) for batch in pending), self._max_depth,
            )

        _LOGGER.debug("Resolved %s of %s elevations", len(elevations), len(coordinates))
        return elevations

    async def _lookup(self, batch: list[Coordinate]):
        """Send one batch through the shared queue and wait for its result."""
        fut = await self._queue.submit(
            lambda: fetch_elevation_batch(
                batch, self._url, timeout=self._timeout, max_attempts=self._max_attempts
            )
        )
        return await fut

    def _correlate(
        self,
        results: list[tuple[float, float, float | None]],
        index: CoordinateIndex,
        elevations: dict[Coordinate, int],
    ) -> None:
        """Attach each echoed elevation to the input coordinates it matches."""
        for lat, lon, elevation in results:
            if elevation is None:
                continue
            matches = self._codec.match(Coordinate(lat=lat, lon=lon), index)
            if not matches:
                _LOGGER.debug("No input coordinate matches echoed (%s, %s)", lat, lon)
                continue
            for coord in matches:
                elevations[coord] = round(elevation)
