"""
Stateless geodesy helpers used to build regional queries and filter results.

All inputs are WGS84 Coordinates; distances are kilometres.
"""
from __future__ import annotations

import math
from typing import Any, Mapping, Sequence

from .const import EARTH_RADIUS_KM, KM_PER_DEGREE
from .models import BoundingBox, Coordinate


def haversine_distance(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance between a and b using the mean Earth radius."""
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    d_lat = math.radians(b.lat - a.lat)
    d_lon = math.radians(b.lon - a.lon)

    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(d_lon / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def distance_point_to_segment(point: Coordinate, seg_start: Coordinate, seg_end: Coordinate) -> float:
    """
    Approximate distance from point to the segment seg_start→seg_end.

    Takes the smallest of the distances to both endpoints and to the
    midpoint. This is not a projection onto the geodesic: for a point
    abreast of a long segment the result overestimates the true distance.
    Segments are short in practice and the search radius absorbs the error.
    """
    midpoint = Coordinate(
        lat=(seg_start.lat + seg_end.lat) / 2,
        lon=(seg_start.lon + seg_end.lon) / 2,
    )
    return min(
        haversine_distance(point, seg_start),
        haversine_distance(point, seg_end),
        haversine_distance(point, midpoint),
    )


def distance_to_path(point: Coordinate, path: Sequence[Coordinate]) -> float:
    """Distance to a one-point path, or the minimum over consecutive segments."""
    if not path:
        return math.inf
    if len(path) == 1:
        return haversine_distance(point, path[0])
    return min(
        distance_point_to_segment(point, start, end)
        for start, end in zip(path, path[1:])
    )


def bounding_box(points: Sequence[Coordinate], buffer_km: float = 0.0) -> BoundingBox | None:
    """
    Smallest lon/lat box around points, grown by buffer_km on every side.

    The buffer is converted with a fixed degrees-per-km ratio, so it is
    exact for latitude and too narrow in longitude away from the equator.
    """
    if not points:
        return None

    buffer_deg = buffer_km / KM_PER_DEGREE
    return BoundingBox(
        min_lon=min(p.lon for p in points) - buffer_deg,
        min_lat=min(p.lat for p in points) - buffer_deg,
        max_lon=max(p.lon for p in points) + buffer_deg,
        max_lat=max(p.lat for p in points) + buffer_deg,
    )


def _exterior_ring(polygon: Mapping[str, Any]) -> list | None:
    """Exterior ring of a GeoJSON Polygon or Feature wrapping one."""
    if not isinstance(polygon, Mapping):
        return None
    if polygon.get("type") == "Feature":
        polygon = polygon.get("geometry") or {}
    if polygon.get("type") != "Polygon":
        return None
    rings = polygon.get("coordinates") or []
    if not rings or not isinstance(rings[0], (list, tuple)):
        return None
    return rings[0]


def point_in_polygon(point: Coordinate, polygon: Mapping[str, Any]) -> bool:
    """
    Ray-casting containment test against a GeoJSON polygon's exterior ring.

    Holes are ignored. Ring vertices are [lon, lat]; the ring may be given
    open or closed. Anything other than a Polygon (or a Feature wrapping
    one) is never considered to contain the point.
    """
    ring = _exterior_ring(polygon)
    if not ring:
        return False

    x, y = point.lon, point.lat
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i][0], ring[i][1]
        xj, yj = ring[j][0], ring[j][1]
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside
