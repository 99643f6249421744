"""
Domain models for geotrace.

This module contains pure data classes for search results and annotation
entities. These classes have no dependencies on HTTP, provider APIs or the
rendering collaborator; renderer handles are stored as opaque values.
"""
from __future__ import annotations

import dataclasses
import enum
from typing import Any, ClassVar, Hashable

from .const import DEFAULT_COLOR


@dataclasses.dataclass(frozen=True)
class Coordinate:
    """WGS84 position in decimal degrees."""

    lat: float
    lon: float


@dataclasses.dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box in degrees."""

    min_lon: float
    min_lat: float
    max_lon: float
    max_lat: float


@dataclasses.dataclass(frozen=True)
class SearchResult:
    """
    One place returned by a search.

    Produced only by the search functions; never mutated afterwards.
    Use dataclasses.replace() to derive an enriched copy.
    """

    primary_label: str
    coordinates: Coordinate
    secondary_label: str | None = None
    kind: str | None = None
    elevation: int | None = None


class EntityKind(str, enum.Enum):
    """Annotation kinds; values match the persisted record format."""

    POINT = "point"
    LINE_SEGMENT = "lineSegment"
    CIRCLE = "circle"
    POLYGON = "polygon"


class LineMode(str, enum.Enum):
    """How a line segment was constructed."""

    COORDINATE = "coordinate"
    AZIMUTH = "azimuth"
    INTERSECTION = "intersection"
    PARALLEL = "parallel"


@dataclasses.dataclass(kw_only=True)
class AnnotationEntity:
    """Fields shared by every annotation kind."""

    kind: ClassVar[EntityKind]
    label: ClassVar[str]

    id: str
    name: str
    created_at: float
    color: str = DEFAULT_COLOR
    elevation: float | None = None
    note_id: str | None = None
    # Opaque token handed over by the renderer; never dereferenced here.
    renderer_handle: Hashable | None = None


@dataclasses.dataclass(kw_only=True)
class PointEntity(AnnotationEntity):
    kind: ClassVar[EntityKind] = EntityKind.POINT
    label: ClassVar[str] = "Point"

    coordinates: Coordinate


@dataclasses.dataclass(kw_only=True)
class CircleEntity(AnnotationEntity):
    kind: ClassVar[EntityKind] = EntityKind.CIRCLE
    label: ClassVar[str] = "Circle"

    center: Coordinate
    radius: float  # kilometres


@dataclasses.dataclass(kw_only=True)
class LineSegmentEntity(AnnotationEntity):
    """
    Line segment starting at center.

    Parallels (mode PARALLEL) have no endpoint; their single constant
    value is kept in ``longitude``, which is what the persisted format calls it.
    """

    kind: ClassVar[EntityKind] = EntityKind.LINE_SEGMENT
    label: ClassVar[str] = "Line Segment"

    center: Coordinate
    mode: LineMode = LineMode.COORDINATE
    endpoint: Coordinate | None = None
    distance: float | None = None
    azimuth: float | None = None
    intersection_point: Coordinate | None = None
    intersection_distance: float | None = None
    longitude: float | None = None


@dataclasses.dataclass(kw_only=True)
class PolygonEntity(AnnotationEntity):
    kind: ClassVar[EntityKind] = EntityKind.POLYGON
    label: ClassVar[str] = "Polygon"

    points: list[Coordinate] = dataclasses.field(default_factory=list)

    def to_geojson(self) -> dict[str, Any]:
        """Return the outline as a closed GeoJSON Polygon ([lon, lat] vertices)."""
        ring = [[p.lon, p.lat] for p in self.points]
        if ring and ring[0] != ring[-1]:
            ring.append(list(ring[0]))
        return {"type": "Polygon", "coordinates": [ring]}


ENTITY_TYPES: dict[EntityKind, type[AnnotationEntity]] = {
    EntityKind.POINT: PointEntity,
    EntityKind.LINE_SEGMENT: LineSegmentEntity,
    EntityKind.CIRCLE: CircleEntity,
    EntityKind.POLYGON: PolygonEntity,
}


@dataclasses.dataclass(kw_only=True)
class Note:
    """Free-text note, optionally linked to exactly one annotation entity."""

    id: str
    title: str
    content: str
    created_at: float
    updated_at: float
    linked_kind: EntityKind | None = None
    linked_id: str | None = None

    @property
    def link(self) -> tuple[EntityKind, str] | None:
        if self.linked_kind is None or self.linked_id is None:
            return None
        return self.linked_kind, self.linked_id
