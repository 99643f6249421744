"""
Record format for annotation entities and notes.

Responsible for:
- Structural validation of externally supplied records (voluptuous schemas)
- Converting validated records into entity / note instances
- Converting entities and notes back into records for export

Records use the persisted field names (camelCase).
"""
from __future__ import annotations

import math
import time
from typing import Any

import voluptuous as vol

from .const import DEFAULT_COLOR, DEFAULT_POLYGON_COLOR, MIN_POLYGON_VERTICES
from .models import (
    AnnotationEntity,
    CircleEntity,
    Coordinate,
    EntityKind,
    LineMode,
    LineSegmentEntity,
    Note,
    PointEntity,
    PolygonEntity,
)


def finite_number(value: Any) -> float:
    """Accept int/float values that are neither NaN nor infinite."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise vol.Invalid("expected a number")
    if not math.isfinite(value):
        raise vol.Invalid("expected a finite number")
    return float(value)


optional_number = vol.Any(None, finite_number)
optional_string = vol.Any(None, str)

COORDINATE_SCHEMA = vol.Schema(
    {
        vol.Required("lat"): finite_number,
        vol.Required("lon"): finite_number,
    },
    extra=vol.REMOVE_EXTRA,
)

_ENTITY_FIELDS = {
    vol.Required("id"): vol.All(str, vol.Length(min=1)),
    vol.Required("name"): str,
    vol.Optional("createdAt"): optional_number,
    vol.Optional("color"): optional_string,
    vol.Optional("elevation"): optional_number,
    vol.Optional("noteId"): optional_string,
}

POINT_SCHEMA = vol.Schema(
    {
        **_ENTITY_FIELDS,
        vol.Required("coordinates"): COORDINATE_SCHEMA,
    },
    extra=vol.REMOVE_EXTRA,
)

CIRCLE_SCHEMA = vol.Schema(
    {
        **_ENTITY_FIELDS,
        vol.Required("center"): COORDINATE_SCHEMA,
        vol.Required("radius"): vol.All(finite_number, vol.Range(min=0, min_included=False)),
    },
    extra=vol.REMOVE_EXTRA,
)

PARALLEL_SCHEMA = vol.Schema(
    {
        **_ENTITY_FIELDS,
        vol.Required("center"): COORDINATE_SCHEMA,
        vol.Required("mode"): LineMode.PARALLEL.value,
        vol.Required("longitude"): finite_number,
    },
    extra=vol.REMOVE_EXTRA,
)

SEGMENT_SCHEMA = vol.Schema(
    {
        **_ENTITY_FIELDS,
        vol.Required("center"): COORDINATE_SCHEMA,
        vol.Required("mode"): vol.In(
            [LineMode.COORDINATE.value, LineMode.AZIMUTH.value, LineMode.INTERSECTION.value]
        ),
        vol.Required("endpoint"): COORDINATE_SCHEMA,
        vol.Optional("distance"): optional_number,
        vol.Optional("azimuth"): optional_number,
        vol.Optional("intersectionPoint"): vol.Any(None, COORDINATE_SCHEMA),
        vol.Optional("intersectionDistance"): optional_number,
    },
    extra=vol.REMOVE_EXTRA,
)

LINE_SEGMENT_SCHEMA = vol.Any(PARALLEL_SCHEMA, SEGMENT_SCHEMA)

POLYGON_SCHEMA = vol.Schema(
    {
        **_ENTITY_FIELDS,
        vol.Required("points"): vol.All([COORDINATE_SCHEMA], vol.Length(min=MIN_POLYGON_VERTICES)),
    },
    extra=vol.REMOVE_EXTRA,
)

NOTE_SCHEMA = vol.Schema(
    {
        vol.Required("id"): vol.All(str, vol.Length(min=1)),
        vol.Required("title"): str,
        vol.Required("content"): str,
        vol.Optional("createdAt"): optional_number,
        vol.Optional("updatedAt"): optional_number,
        vol.Optional("linkedElementType"): vol.Any(None, vol.In([k.value for k in EntityKind])),
        vol.Optional("linkedElementId"): optional_string,
    },
    extra=vol.REMOVE_EXTRA,
)

ENTITY_SCHEMAS: dict[EntityKind, Any] = {
    EntityKind.POINT: POINT_SCHEMA,
    EntityKind.LINE_SEGMENT: LINE_SEGMENT_SCHEMA,
    EntityKind.CIRCLE: CIRCLE_SCHEMA,
    EntityKind.POLYGON: POLYGON_SCHEMA,
}


def validate_record(kind: EntityKind, record: Any) -> dict:
    """Return the cleaned record, or raise vol.Invalid."""
    if not isinstance(record, dict):
        raise vol.Invalid(f"expected a mapping, got {type(record).__name__}")
    return ENTITY_SCHEMAS[kind](record)


def _timestamp(value: float | None) -> float:
    return time.time() if value is None else value


def _coordinate(record: dict | None) -> Coordinate | None:
    if record is None:
        return None
    return Coordinate(lat=record["lat"], lon=record["lon"])


def _coordinate_record(coord: Coordinate | None) -> dict | None:
    if coord is None:
        return None
    return {"lat": coord.lat, "lon": coord.lon}


def entity_from_record(kind: EntityKind, record: dict) -> AnnotationEntity:
    """
    Build an entity from a record that already passed validate_record().

    Renderer handles and note links are never taken from the record; the
    store owns both.
    """
    common = dict(
        id=record["id"],
        name=record["name"],
        created_at=_timestamp(record.get("createdAt")),
        elevation=record.get("elevation"),
    )
    if kind is EntityKind.POINT:
        return PointEntity(
            coordinates=_coordinate(record["coordinates"]),
            color=record.get("color") or DEFAULT_COLOR,
            **common,
        )
    if kind is EntityKind.CIRCLE:
        return CircleEntity(
            center=_coordinate(record["center"]),
            radius=record["radius"],
            color=record.get("color") or DEFAULT_COLOR,
            **common,
        )
    if kind is EntityKind.LINE_SEGMENT:
        return LineSegmentEntity(
            center=_coordinate(record["center"]),
            mode=LineMode(record["mode"]),
            endpoint=_coordinate(record.get("endpoint")),
            distance=record.get("distance"),
            azimuth=record.get("azimuth"),
            intersection_point=_coordinate(record.get("intersectionPoint")),
            intersection_distance=record.get("intersectionDistance"),
            longitude=record.get("longitude"),
            color=record.get("color") or DEFAULT_COLOR,
            **common,
        )
    if kind is EntityKind.POLYGON:
        return PolygonEntity(
            points=[_coordinate(p) for p in record["points"]],
            color=record.get("color") or DEFAULT_POLYGON_COLOR,
            **common,
        )
    raise ValueError(f"Unknown entity kind: {kind}")


def entity_to_record(entity: AnnotationEntity) -> dict:
    """Export an entity in the persisted record format (no renderer handle)."""
    record: dict[str, Any] = {
        "id": entity.id,
        "name": entity.name,
        "createdAt": entity.created_at,
        "color": entity.color,
    }
    if entity.elevation is not None:
        record["elevation"] = entity.elevation
    if entity.note_id is not None:
        record["noteId"] = entity.note_id

    if isinstance(entity, PointEntity):
        record["coordinates"] = _coordinate_record(entity.coordinates)
    elif isinstance(entity, CircleEntity):
        record["center"] = _coordinate_record(entity.center)
        record["radius"] = entity.radius
    elif isinstance(entity, LineSegmentEntity):
        record["center"] = _coordinate_record(entity.center)
        record["mode"] = entity.mode.value
        if entity.mode is LineMode.PARALLEL:
            record["longitude"] = entity.longitude
        else:
            record["endpoint"] = _coordinate_record(entity.endpoint)
            for key, value in (
                ("distance", entity.distance),
                ("azimuth", entity.azimuth),
                ("intersectionPoint", _coordinate_record(entity.intersection_point)),
                ("intersectionDistance", entity.intersection_distance),
            ):
                if value is not None:
                    record[key] = value
    elif isinstance(entity, PolygonEntity):
        record["points"] = [_coordinate_record(p) for p in entity.points]
    return record


def note_from_record(record: dict) -> Note:
    """Build a Note from a record that already passed NOTE_SCHEMA."""
    created_at = _timestamp(record.get("createdAt"))
    linked_kind = record.get("linkedElementType")
    return Note(
        id=record["id"],
        title=record["title"],
        content=record["content"],
        created_at=created_at,
        updated_at=created_at if record.get("updatedAt") is None else record["updatedAt"],
        linked_kind=EntityKind(linked_kind) if linked_kind else None,
        linked_id=record.get("linkedElementId"),
    )


def note_to_record(note: Note) -> dict:
    record: dict[str, Any] = {
        "id": note.id,
        "title": note.title,
        "content": note.content,
        "createdAt": note.created_at,
        "updatedAt": note.updated_at,
    }
    if note.link is not None:
        record["linkedElementType"] = note.linked_kind.value
        record["linkedElementId"] = note.linked_id
    return record
