"""
Tests for GeoKeyCodec: key rendering and multi-precision matching.
"""

from __future__ import annotations

import unittest

from geotrace.geokey import GeoKeyCodec, fixed_precision_key, micro_degree_key
from geotrace.models import Coordinate


class TestKeyStrategies(unittest.TestCase):

    def test_fixed_precision_pads_decimals(self):
        key = fixed_precision_key(6)(Coordinate(48.8566, 2.3522))
        self.assertEqual(key, "48.856600_2.352200")

    def test_fixed_precision_five(self):
        key = fixed_precision_key(5)(Coordinate(48.123456, -2.5))
        self.assertEqual(key, "48.12346_-2.50000")

    def test_micro_degree_key_drops_padding(self):
        self.assertEqual(micro_degree_key(Coordinate(48.8566, 2.5)), "48.8566_2.5")


class TestGeoKeyCodec(unittest.TestCase):

    def setUp(self):
        self.codec = GeoKeyCodec()

    def test_requires_a_strategy(self):
        with self.assertRaises(ValueError):
            GeoKeyCodec(())

    def test_keys_follow_strategy_order(self):
        coord = Coordinate(1.5, 2.25)
        self.assertEqual(self.codec.strategy_names, ["fixed6", "fixed5", "micro"])
        self.assertEqual(self.codec.keys(coord), ["1.500000_2.250000", "1.50000_2.25000", "1.5_2.25"])
        self.assertEqual(self.codec.primary_key(coord), "1.500000_2.250000")

    def test_exact_echo_matches(self):
        coord = Coordinate(45.123456, 5.654321)
        index = self.codec.build_index([coord])
        self.assertEqual(self.codec.match(Coordinate(45.123456, 5.654321), index), [coord])

    def test_echo_at_five_decimals_falls_back_to_looser_key(self):
        coord = Coordinate(45.123456, 5.654321)
        index = self.codec.build_index([coord])
        echoed = Coordinate(round(coord.lat, 5), round(coord.lon, 5))
        self.assertEqual(self.codec.match(echoed, index), [coord])

    def test_tighter_match_wins_over_looser(self):
        near = Coordinate(45.123456, 5.654321)
        also_near = Coordinate(45.123461, 5.654319)  # same 5-decimal key
        index = self.codec.build_index([near, also_near])
        self.assertEqual(self.codec.match(near, index), [near])

    def test_ambiguous_loose_match_returns_every_candidate(self):
        a = Coordinate(45.123456, 5.654321)
        b = Coordinate(45.123461, 5.654319)
        index = self.codec.build_index([a, b])
        echoed = Coordinate(45.12346, 5.65432)
        self.assertCountEqual(self.codec.match(echoed, index), [a, b])

    def test_duplicates_registered_once(self):
        coord = Coordinate(1.0, 1.0)
        index = self.codec.build_index([coord, coord])
        self.assertEqual(index["fixed6"]["1.000000_1.000000"], [coord])

    def test_no_match(self):
        index = self.codec.build_index([Coordinate(1.0, 1.0)])
        self.assertEqual(self.codec.match(Coordinate(2.0, 2.0), index), [])

    def test_custom_strategy_list(self):
        codec = GeoKeyCodec((("whole", fixed_precision_key(0)),))
        index = codec.build_index([Coordinate(10.2, 20.3)])
        self.assertEqual(codec.match(Coordinate(9.8, 19.9), index), [Coordinate(10.2, 20.3)])
