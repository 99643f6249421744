"""
Tests for elevation lookup: the low-level batch call and ElevationResolver's
split-on-413 and coordinate correlation logic.
"""

from __future__ import annotations

import unittest
from unittest.mock import AsyncMock, patch

from geotrace.api.elevation import fetch_elevation_batch
from geotrace.models import Coordinate
from geotrace.requests import ApiResponseError, PayloadTooLargeError

from .test_common import make_elevation_results, make_path, make_resolver

FETCH = "geotrace.elevation.fetch_elevation_batch"
MAKE_REQUEST = "geotrace.api.elevation.make_request"


def _many_coords(n: int) -> list[Coordinate]:
    return [Coordinate(lat=45 + i * 0.001, lon=5 + i * 0.001) for i in range(n)]


class TestFetchElevationBatch(unittest.IsolatedAsyncioTestCase):

    async def test_posts_locations_and_parses_results(self):
        raw = {"results": [
            {"latitude": 48.8566, "longitude": 2.3522, "elevation": 35.4},
            {"latitude": 45.0, "longitude": 5.0, "elevation": None},
        ]}
        with patch(MAKE_REQUEST, new=AsyncMock(return_value=raw)) as mock_request:
            results = await fetch_elevation_batch(make_path((48.8566, 2.3522), (45.0, 5.0)))

        self.assertEqual(results, [(48.8566, 2.3522, 35.4), (45.0, 5.0, None)])
        args, kwargs = mock_request.call_args
        self.assertEqual(args[0], "POST")
        self.assertEqual(kwargs["payload"], {"locations": [
            {"latitude": 48.8566, "longitude": 2.3522},
            {"latitude": 45.0, "longitude": 5.0},
        ]})

    async def test_empty_input_sends_nothing(self):
        with patch(MAKE_REQUEST, new=AsyncMock()) as mock_request:
            self.assertEqual(await fetch_elevation_batch([]), [])
        mock_request.assert_not_called()

    async def test_malformed_payload_yields_empty_list(self):
        with patch(MAKE_REQUEST, new=AsyncMock(return_value={"status": "ok"})):
            self.assertEqual(await fetch_elevation_batch(make_path((1, 1))), [])

    async def test_skips_results_without_coordinates(self):
        raw = {"results": [{"elevation": 12}, "junk", {"latitude": 1, "longitude": 2, "elevation": 3}]}
        with patch(MAKE_REQUEST, new=AsyncMock(return_value=raw)):
            self.assertEqual(await fetch_elevation_batch(make_path((1, 2))), [(1.0, 2.0, 3)])

    async def test_payload_too_large_propagates(self):
        with patch(MAKE_REQUEST, new=AsyncMock(side_effect=PayloadTooLargeError(413))):
            with self.assertRaises(PayloadTooLargeError):
                await fetch_elevation_batch(make_path((1, 2)))


class TestElevationResolver(unittest.IsolatedAsyncioTestCase):

    async def test_empty_input(self):
        resolver = make_resolver()
        with patch(FETCH, new=AsyncMock()) as mock_fetch:
            self.assertEqual(await resolver.resolve([]), {})
        mock_fetch.assert_not_called()

    async def test_exact_echo_resolves_and_rounds(self):
        coords = make_path((48.8566, 2.3522), (45.0, 5.0))
        resolver = make_resolver()
        with patch(FETCH, new=AsyncMock(return_value=make_elevation_results(coords, elevation=35.6))):
            result = await resolver.resolve(coords)

        self.assertEqual(result, {coords[0]: 36, coords[1]: 36})

    async def test_echo_at_lower_precision_still_correlates(self):
        coords = make_path((45.123456, 5.654321), (46.000001, 6.999999))
        resolver = make_resolver()
        echoed = make_elevation_results(coords, elevation=812.2, decimals=5)
        with patch(FETCH, new=AsyncMock(return_value=echoed)):
            result = await resolver.resolve(coords)

        self.assertEqual(result, {coords[0]: 812, coords[1]: 812})

    async def test_null_elevation_is_omitted(self):
        coords = make_path((1, 1), (2, 2))
        resolver = make_resolver()
        echoed = [(1.0, 1.0, 100.0), (2.0, 2.0, None)]
        with patch(FETCH, new=AsyncMock(return_value=echoed)):
            result = await resolver.resolve(coords)

        self.assertEqual(result, {coords[0]: 100})

    async def test_unmatched_echo_is_ignored(self):
        coords = make_path((1, 1))
        resolver = make_resolver()
        with patch(FETCH, new=AsyncMock(return_value=[(10.0, 10.0, 5.0)])):
            self.assertEqual(await resolver.resolve(coords), {})

    async def test_split_once_on_413(self):
        coords = _many_coords(5)
        resolver = make_resolver()

        async def fake_fetch(batch, *args, **kwargs):
            if len(batch) > 3:
                raise PayloadTooLargeError(413)
            return make_elevation_results(batch, elevation=10)

        with patch(FETCH, new=AsyncMock(side_effect=fake_fetch)) as mock_fetch:
            result = await resolver.resolve(coords)

        self.assertEqual(set(result), set(coords))
        self.assertEqual(mock_fetch.call_count, 3)
        sizes = [len(c.args[0]) for c in mock_fetch.call_args_list]
        self.assertEqual(sizes, [5, 3, 2])

    async def test_always_413_stops_after_bounded_requests(self):
        coords = _many_coords(40)
        resolver = make_resolver(max_depth=5)

        with patch(FETCH, new=AsyncMock(side_effect=PayloadTooLargeError(413))) as mock_fetch:
            with self.assertLogs("geotrace.elevation", level="WARNING") as logs:
                result = await resolver.resolve(coords)

        self.assertEqual(result, {})
        self.assertEqual(mock_fetch.call_count, 31)
        self.assertTrue(any("Giving up" in line for line in logs.output))

    async def test_other_failures_drop_only_that_batch(self):
        coords = _many_coords(4)
        resolver = make_resolver()

        async def fake_fetch(batch, *args, **kwargs):
            if len(batch) == 4:
                raise PayloadTooLargeError(413)
            if batch[0] == coords[0]:
                raise ApiResponseError(500, "oops")
            return make_elevation_results(batch, elevation=7)

        with patch(FETCH, new=AsyncMock(side_effect=fake_fetch)) as mock_fetch:
            result = await resolver.resolve(coords)

        self.assertEqual(result, {coords[2]: 7, coords[3]: 7})
        self.assertEqual(mock_fetch.call_count, 3)

    async def test_non_413_failure_is_not_split(self):
        coords = _many_coords(8)
        resolver = make_resolver()

        with patch(FETCH, new=AsyncMock(side_effect=ApiResponseError(502, "bad gateway"))) as mock_fetch:
            result = await resolver.resolve(coords)

        self.assertEqual(result, {})
        self.assertEqual(mock_fetch.call_count, 1)

    async def test_lookups_go_through_the_queue(self):
        coords = _many_coords(2)
        resolver = make_resolver()
        with patch(FETCH, new=AsyncMock(return_value=make_elevation_results(coords))):
            await resolver.resolve(coords)
        self.assertEqual(resolver._queue.dispatched, 1)
