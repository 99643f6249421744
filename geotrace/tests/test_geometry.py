"""
Tests for the geodesy helpers.
"""

from __future__ import annotations

import math
import unittest

from geotrace.const import KM_PER_DEGREE
from geotrace.geometry import (
    bounding_box,
    distance_point_to_segment,
    distance_to_path,
    haversine_distance,
    point_in_polygon,
)
from geotrace.models import Coordinate

SQUARE = {"type": "Polygon", "coordinates": [[[0, 0], [0, 2], [2, 2], [2, 0]]]}
CLOSED_SQUARE = {"type": "Polygon", "coordinates": [[[0, 0], [0, 2], [2, 2], [2, 0], [0, 0]]]}


class TestHaversine(unittest.TestCase):

    def test_one_degree_of_longitude_at_equator(self):
        d = haversine_distance(Coordinate(0, 0), Coordinate(0, 1))
        self.assertAlmostEqual(d, 111.2, delta=111.2 * 0.01)

    def test_zero_distance(self):
        p = Coordinate(48.8566, 2.3522)
        self.assertEqual(haversine_distance(p, p), 0.0)

    def test_symmetric(self):
        a, b = Coordinate(48.8566, 2.3522), Coordinate(45.764, 4.8357)
        self.assertAlmostEqual(haversine_distance(a, b), haversine_distance(b, a))
        # Paris → Lyon is roughly 392 km as the crow flies
        self.assertAlmostEqual(haversine_distance(a, b), 392, delta=5)


class TestSegmentDistance(unittest.TestCase):

    def test_closest_of_endpoints_and_midpoint(self):
        start, end = Coordinate(0, 0), Coordinate(0, 0.02)
        point = Coordinate(0.001, 0.01)  # next to the midpoint
        expected = haversine_distance(point, Coordinate(0, 0.01))
        self.assertAlmostEqual(distance_point_to_segment(point, start, end), expected)

    def test_approximation_overestimates_beside_long_segments(self):
        """Known limitation: no projection onto the segment."""
        start, end = Coordinate(0, 0), Coordinate(0, 2)
        point = Coordinate(0, 0.5)  # exactly on the segment
        self.assertGreater(distance_point_to_segment(point, start, end), 50)

    def test_distance_to_single_point_path(self):
        p = Coordinate(0, 0)
        self.assertAlmostEqual(distance_to_path(Coordinate(0, 1), [p]), haversine_distance(Coordinate(0, 1), p))

    def test_distance_to_path_takes_minimum_over_segments(self):
        path = [Coordinate(0, 0), Coordinate(0, 1), Coordinate(1, 1)]
        point = Coordinate(1, 1.001)
        self.assertLess(distance_to_path(point, path), 0.2)
        self.assertAlmostEqual(
            distance_to_path(point, path),
            min(
                distance_point_to_segment(point, path[0], path[1]),
                distance_point_to_segment(point, path[1], path[2]),
            ),
        )

    def test_distance_to_empty_path(self):
        self.assertEqual(distance_to_path(Coordinate(0, 0), []), math.inf)


class TestBoundingBox(unittest.TestCase):

    def test_box_without_buffer(self):
        bbox = bounding_box([Coordinate(1, 2), Coordinate(3, -1), Coordinate(2, 5)])
        self.assertEqual((bbox.min_lon, bbox.min_lat, bbox.max_lon, bbox.max_lat), (-1, 1, 5, 3))

    def test_buffer_grows_every_side(self):
        bbox = bounding_box([Coordinate(10, 20)], buffer_km=KM_PER_DEGREE)
        self.assertAlmostEqual(bbox.min_lat, 9)
        self.assertAlmostEqual(bbox.max_lat, 11)
        self.assertAlmostEqual(bbox.min_lon, 19)
        self.assertAlmostEqual(bbox.max_lon, 21)

    def test_empty_points(self):
        self.assertIsNone(bounding_box([], 1))


class TestPointInPolygon(unittest.TestCase):

    def test_square_inside_and_outside(self):
        self.assertTrue(point_in_polygon(Coordinate(lat=1, lon=1), SQUARE))
        self.assertFalse(point_in_polygon(Coordinate(lat=3, lon=3), SQUARE))

    def test_open_and_closed_rings_agree(self):
        for lat, lon in [(1, 1), (3, 3), (0.5, 1.9), (-0.1, 1), (1.99, 0.01)]:
            point = Coordinate(lat=lat, lon=lon)
            self.assertEqual(
                point_in_polygon(point, SQUARE),
                point_in_polygon(point, CLOSED_SQUARE),
                (lat, lon),
            )

    def test_feature_wrapping_polygon(self):
        feature = {"type": "Feature", "properties": {}, "geometry": SQUARE}
        self.assertTrue(point_in_polygon(Coordinate(lat=1, lon=1), feature))

    def test_other_geometries_never_contain(self):
        line = {"type": "LineString", "coordinates": [[0, 0], [2, 2]]}
        feature = {"type": "Feature", "geometry": line}
        self.assertFalse(point_in_polygon(Coordinate(lat=1, lon=1), line))
        self.assertFalse(point_in_polygon(Coordinate(lat=1, lon=1), feature))
        self.assertFalse(point_in_polygon(Coordinate(lat=1, lon=1), {"type": "Polygon", "coordinates": []}))

    def test_holes_are_ignored(self):
        with_hole = {
            "type": "Polygon",
            "coordinates": [
                [[0, 0], [0, 4], [4, 4], [4, 0]],
                [[1, 1], [1, 3], [3, 3], [3, 1]],
            ],
        }
        self.assertTrue(point_in_polygon(Coordinate(lat=2, lon=2), with_hole))

    def test_concave_polygon(self):
        # U shape opening to the north
        u_shape = {
            "type": "Polygon",
            "coordinates": [[[0, 0], [3, 0], [3, 3], [2, 3], [2, 1], [1, 1], [1, 3], [0, 3]]],
        }
        self.assertTrue(point_in_polygon(Coordinate(lat=2, lon=0.5), u_shape))
        self.assertFalse(point_in_polygon(Coordinate(lat=2, lon=1.5), u_shape))
