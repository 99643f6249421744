"""
Coordinate keys for matching positions across independently rounded sources.

Providers echo coordinates at whatever precision they like, so an exact
float comparison is useless. Each strategy turns a coordinate into a string
key; strategies are tried in order, tightest first, and the first one that
finds a match wins. Adding a tolerance is adding an entry to KEY_STRATEGIES.
"""
from __future__ import annotations

import math
from typing import Callable, Iterable

from .models import Coordinate

KeyStrategy = Callable[[Coordinate], str]

# strategy name → key → input coordinates sharing that key
CoordinateIndex = dict[str, dict[str, list[Coordinate]]]


def fixed_precision_key(decimals: int) -> KeyStrategy:
    """Key rendering both components with a fixed number of decimals."""
    def _key(coord: Coordinate) -> str:
        return f"{coord.lat:.{decimals}f}_{coord.lon:.{decimals}f}"
    return _key


def _round_half_up(value: float, scale: int) -> float:
    return math.floor(value * scale + 0.5) / scale


def micro_degree_key(coord: Coordinate) -> str:
    """Key from the magnitude rounded to 1e-6, rendered without padding."""
    return f"{_round_half_up(coord.lat, 1_000_000)!r}_{_round_half_up(coord.lon, 1_000_000)!r}"


KEY_STRATEGIES: tuple[tuple[str, KeyStrategy], ...] = (
    ("fixed6", fixed_precision_key(6)),
    ("fixed5", fixed_precision_key(5)),
    ("micro", micro_degree_key),
)


class GeoKeyCodec:
    """Builds and queries multi-precision coordinate indexes."""

    def __init__(self, strategies: tuple[tuple[str, KeyStrategy], ...] = KEY_STRATEGIES) -> None:
        if not strategies:
            raise ValueError("At least one key strategy is required")
        self._strategies = strategies

    @property
    def strategy_names(self) -> list[str]:
        return [name for name, _ in self._strategies]

    def primary_key(self, coord: Coordinate) -> str:
        """Key from the tightest strategy."""
        return self._strategies[0][1](coord)

    def keys(self, coord: Coordinate) -> list[str]:
        """Keys for coord, one per strategy, in priority order."""
        return [strategy(coord) for _, strategy in self._strategies]

    def build_index(self, coords: Iterable[Coordinate]) -> CoordinateIndex:
        """Register every coordinate under each strategy's key."""
        index: CoordinateIndex = {name: {} for name, _ in self._strategies}
        for coord in coords:
            for name, strategy in self._strategies:
                bucket = index[name].setdefault(strategy(coord), [])
                if coord not in bucket:
                    bucket.append(coord)
        return index

    def match(self, coord: Coordinate, index: CoordinateIndex) -> list[Coordinate]:
        """
        Return the indexed coordinates matching coord.

        Strategies are tried tightest first; the first one with a hit wins.
        Returns an empty list when nothing matches at any precision.
        """
        for name, strategy in self._strategies:
            hits = index.get(name, {}).get(strategy(coord))
            if hits:
                return list(hits)
        return []
