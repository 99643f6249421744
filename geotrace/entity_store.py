"""
EntityStore — in-memory owner of annotation entities and notes.

Responsibilities:
- Create, update and delete points, line segments, circles and polygons.
- Keep note ↔ entity links one-to-one and bidirectional.
- Track which entities currently have a rendered shape (renderer handles).
- Replace the whole state from external records after validating each one.

Not thread-safe: callers must serialise access (one UI/event thread).
Bad annotation data is refused with a warning, never raised.
"""
from __future__ import annotations

import dataclasses
import logging
import time
import uuid
from typing import Any, Hashable, Iterable

import voluptuous as vol

from .const import COLLECTION_KINDS, DEFAULT_COLOR, DEFAULT_POLYGON_COLOR
from .entity_records import (
    NOTE_SCHEMA,
    entity_from_record,
    entity_to_record,
    note_from_record,
    note_to_record,
    validate_record,
)
from .models import (
    AnnotationEntity,
    CircleEntity,
    Coordinate,
    ENTITY_TYPES,
    EntityKind,
    LineMode,
    LineSegmentEntity,
    Note,
    PointEntity,
    PolygonEntity,
)

_LOGGER = logging.getLogger(__name__)

# Fields update() must never touch: identity, and links the store manages itself.
_PROTECTED_FIELDS = frozenset({"id", "created_at", "note_id", "renderer_handle"})
_NOTE_FIELDS = frozenset({"title", "content", "linked_kind", "linked_id"})

HandleKey = tuple[EntityKind, str]


def _collection(data: dict, name: str) -> list:
    """Records of one collection; a value that is not a list counts as empty."""
    records = data.get(name)
    if records is None:
        return []
    if not isinstance(records, list):
        _LOGGER.warning("Collection %s must be a list, got %s; skipped", name, type(records).__name__)
        return []
    return records


@dataclasses.dataclass
class BulkLoadReport:
    """Outcome of load_bulk(): accepted and dropped records per collection."""

    accepted: dict[str, int] = dataclasses.field(default_factory=dict)
    rejected: dict[str, int] = dataclasses.field(default_factory=dict)

    @property
    def total_rejected(self) -> int:
        return sum(self.rejected.values())


class EntityStore:
    """Annotation entities, notes and the entity → renderer handle table."""

    def __init__(self) -> None:
        # kind → id → entity, in insertion order
        self._entities: dict[EntityKind, dict[str, AnnotationEntity]] = {kind: {} for kind in EntityKind}
        # note id → note
        self._notes: dict[str, Note] = {}
        # (kind, entity id) → opaque renderer handle
        self._handles: dict[HandleKey, Hashable] = {}

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def add_point(
        self,
        lat: float,
        lon: float,
        name: str | None = None,
        color: str | None = None,
        elevation: float | None = None,
    ) -> PointEntity | None:
        return self._add(PointEntity(
            coordinates=Coordinate(lat=lat, lon=lon),
            elevation=elevation,
            color=color or DEFAULT_COLOR,
            **self._new_identity(EntityKind.POINT, name),
        ))

    def add_circle(
        self,
        center_lat: float,
        center_lon: float,
        radius_km: float,
        name: str | None = None,
        color: str | None = None,
    ) -> CircleEntity | None:
        return self._add(CircleEntity(
            center=Coordinate(lat=center_lat, lon=center_lon),
            radius=radius_km,
            color=color or DEFAULT_COLOR,
            **self._new_identity(EntityKind.CIRCLE, name),
        ))

    def add_line_segment(
        self,
        start: Coordinate,
        end: Coordinate,
        name: str | None = None,
        mode: LineMode = LineMode.COORDINATE,
        distance: float | None = None,
        azimuth: float | None = None,
        intersection_point: Coordinate | None = None,
        intersection_distance: float | None = None,
        color: str | None = None,
    ) -> LineSegmentEntity | None:
        if LineMode(mode) is LineMode.PARALLEL:
            raise ValueError("Use add_parallel() for parallels")
        return self._add(LineSegmentEntity(
            center=start,
            endpoint=end,
            mode=LineMode(mode),
            distance=distance,
            azimuth=azimuth,
            intersection_point=intersection_point,
            intersection_distance=intersection_distance,
            color=color or DEFAULT_COLOR,
            **self._new_identity(EntityKind.LINE_SEGMENT, name),
        ))

    def add_parallel(
        self,
        latitude: float,
        name: str | None = None,
        color: str | None = None,
    ) -> LineSegmentEntity | None:
        """Line of constant latitude spanning every longitude."""
        if name is None:
            name = f"Parallel {self.count(EntityKind.LINE_SEGMENT) + 1}"
        return self._add(LineSegmentEntity(
            center=Coordinate(lat=latitude, lon=0.0),
            mode=LineMode.PARALLEL,
            longitude=latitude,
            color=color or DEFAULT_COLOR,
            **self._new_identity(EntityKind.LINE_SEGMENT, name),
        ))

    def add_polygon(
        self,
        vertices: Iterable[Coordinate],
        name: str | None = None,
        color: str | None = None,
    ) -> PolygonEntity | None:
        return self._add(PolygonEntity(
            points=list(vertices),
            color=color or DEFAULT_POLYGON_COLOR,
            **self._new_identity(EntityKind.POLYGON, name),
        ))

    def _new_identity(self, kind: EntityKind, name: str | None) -> dict[str, Any]:
        label = ENTITY_TYPES[kind].label
        return {
            "id": str(uuid.uuid4()),
            "name": name if name is not None else f"{label} {self.count(kind) + 1}",
            "created_at": time.time(),
        }

    def _add(self, entity: AnnotationEntity):
        if not self._is_valid(entity):
            return None
        self._entities[entity.kind][entity.id] = entity
        _LOGGER.debug("Added %s %s (%s)", entity.kind.value, entity.id, entity.name)
        return entity

    @staticmethod
    def _is_valid(entity: AnnotationEntity) -> bool:
        try:
            validate_record(entity.kind, entity_to_record(entity))
        except (vol.Invalid, AttributeError, TypeError) as e:
            _LOGGER.warning("Invalid %s %s refused: %s", entity.kind.value, entity.name, e)
            return False
        return True

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, kind: EntityKind | str, entity_id: str) -> AnnotationEntity | None:
        return self._entities[EntityKind(kind)].get(entity_id)

    def entities(self, kind: EntityKind | str) -> list[AnnotationEntity]:
        """Entities of one kind in creation order."""
        return list(self._entities[EntityKind(kind)].values())

    def sorted_entities(self, kind: EntityKind | str) -> list[AnnotationEntity]:
        """Entities of one kind, newest first."""
        return sorted(self.entities(kind), key=lambda e: e.created_at or 0, reverse=True)

    def count(self, kind: EntityKind | str | None = None) -> int:
        """Number of entities of kind, or of all kinds (notes excluded)."""
        if kind is None:
            return sum(len(entities) for entities in self._entities.values())
        return len(self._entities[EntityKind(kind)])

    @property
    def is_empty(self) -> bool:
        return self.count() == 0

    @property
    def points(self) -> list[PointEntity]:
        return self.entities(EntityKind.POINT)

    @property
    def circles(self) -> list[CircleEntity]:
        return self.entities(EntityKind.CIRCLE)

    @property
    def line_segments(self) -> list[LineSegmentEntity]:
        return self.entities(EntityKind.LINE_SEGMENT)

    @property
    def polygons(self) -> list[PolygonEntity]:
        return self.entities(EntityKind.POLYGON)

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    def update(self, kind: EntityKind | str, entity_id: str, **changes) -> bool:
        """
        Merge changes into an existing entity in place.

        Identity, note link and renderer handle cannot be changed here.
        The merged entity is validated like a loaded record; if it fails
        the entity is left untouched. Returns True when applied.
        """
        kind = EntityKind(kind)
        entity = self._entities[kind].get(entity_id)
        if entity is None:
            _LOGGER.warning("Cannot update unknown %s %s", kind.value, entity_id)
            return False

        protected = _PROTECTED_FIELDS.intersection(changes)
        if protected:
            _LOGGER.warning(
                "Ignoring protected fields %s in update of %s %s",
                sorted(protected), kind.value, entity_id,
            )
        changes = {k: v for k, v in changes.items() if k not in _PROTECTED_FIELDS}

        field_names = {f.name for f in dataclasses.fields(entity)}
        unknown = set(changes) - field_names
        if unknown:
            _LOGGER.warning("Unknown fields %s for %s, update refused", sorted(unknown), kind.value)
            return False

        if "mode" in changes:
            try:
                changes["mode"] = LineMode(changes["mode"])
            except ValueError:
                _LOGGER.warning("Unknown line mode %r, update refused", changes["mode"])
                return False
        candidate = dataclasses.replace(entity, **changes)
        if not self._is_valid(candidate):
            return False

        for key, value in changes.items():
            setattr(entity, key, value)
        return True

    def update_point(self, entity_id: str, **changes) -> bool:
        return self.update(EntityKind.POINT, entity_id, **changes)

    def update_circle(self, entity_id: str, **changes) -> bool:
        return self.update(EntityKind.CIRCLE, entity_id, **changes)

    def update_line_segment(self, entity_id: str, **changes) -> bool:
        return self.update(EntityKind.LINE_SEGMENT, entity_id, **changes)

    def update_polygon(self, entity_id: str, **changes) -> bool:
        return self.update(EntityKind.POLYGON, entity_id, **changes)

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete(self, kind: EntityKind | str, entity_id: str) -> bool:
        """Remove an entity together with its notes and its handle entry."""
        kind = EntityKind(kind)
        if entity_id not in self._entities[kind]:
            return False

        for note in [n for n in self._notes.values() if n.link == (kind, entity_id)]:
            self.delete_note(note.id)
        self._handles.pop((kind, entity_id), None)
        del self._entities[kind][entity_id]
        _LOGGER.debug("Deleted %s %s", kind.value, entity_id)
        return True

    def delete_point(self, entity_id: str) -> bool:
        return self.delete(EntityKind.POINT, entity_id)

    def delete_circle(self, entity_id: str) -> bool:
        return self.delete(EntityKind.CIRCLE, entity_id)

    def delete_line_segment(self, entity_id: str) -> bool:
        return self.delete(EntityKind.LINE_SEGMENT, entity_id)

    def delete_polygon(self, entity_id: str) -> bool:
        return self.delete(EntityKind.POLYGON, entity_id)

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    @property
    def notes(self) -> list[Note]:
        return list(self._notes.values())

    @property
    def note_count(self) -> int:
        return len(self._notes)

    def sorted_notes(self) -> list[Note]:
        """Notes, most recently updated first."""
        return sorted(
            self._notes.values(),
            key=lambda n: n.updated_at or n.created_at or 0,
            reverse=True,
        )

    def get_note(self, note_id: str) -> Note | None:
        return self._notes.get(note_id)

    def note_for(self, kind: EntityKind | str, entity_id: str) -> Note | None:
        """The note linked to an entity, if any."""
        entity = self.get(kind, entity_id)
        if entity is None or entity.note_id is None:
            return None
        return self._notes.get(entity.note_id)

    def add_note(
        self,
        title: str,
        content: str,
        linked_kind: EntityKind | str | None = None,
        linked_id: str | None = None,
    ) -> Note:
        now = time.time()
        note = Note(id=str(uuid.uuid4()), title=title, content=content, created_at=now, updated_at=now)
        self._notes[note.id] = note
        if linked_kind is not None and linked_id is not None:
            self._link(note, EntityKind(linked_kind), linked_id)
        return note

    def update_note(self, note_id: str, **changes) -> bool:
        """Merge title/content/link changes into a note and bump updated_at."""
        note = self._notes.get(note_id)
        if note is None:
            _LOGGER.warning("Cannot update unknown note %s", note_id)
            return False

        unknown = set(changes) - _NOTE_FIELDS
        if unknown:
            _LOGGER.warning("Unknown note fields %s, update refused", sorted(unknown))
            return False

        old_link = note.link
        new_kind = changes.get("linked_kind", note.linked_kind)
        new_id = changes.get("linked_id", note.linked_id)
        try:
            new_link = (EntityKind(new_kind), new_id) if new_kind is not None and new_id is not None else None
        except ValueError:
            _LOGGER.warning("Unknown entity kind %r for note %s, update refused", new_kind, note_id)
            return False

        note.title = changes.get("title", note.title)
        note.content = changes.get("content", note.content)
        note.updated_at = time.time()

        if new_link != old_link:
            self._unlink(note)
            if new_link is not None:
                self._link(note, *new_link)
        return True

    def attach_note(self, note_id: str, kind: EntityKind | str, entity_id: str) -> bool:
        return self.update_note(note_id, linked_kind=kind, linked_id=entity_id)

    def detach_note(self, note_id: str) -> bool:
        return self.update_note(note_id, linked_kind=None, linked_id=None)

    def delete_note(self, note_id: str) -> bool:
        note = self._notes.pop(note_id, None)
        if note is None:
            return False
        self._unlink(note)
        return True

    def _link(self, note: Note, kind: EntityKind, entity_id: str) -> None:
        """Point note and entity at each other, evicting any previous note."""
        entity = self._entities[kind].get(entity_id)
        if entity is None:
            _LOGGER.warning(
                "Note %s links to unknown %s %s, leaving it unlinked",
                note.id, kind.value, entity_id,
            )
            note.linked_kind = None
            note.linked_id = None
            return

        if entity.note_id is not None and entity.note_id != note.id:
            _LOGGER.warning(
                "%s %s already has note %s, replacing it with note %s",
                kind.value, entity_id, entity.note_id, note.id,
            )
            previous = self._notes.get(entity.note_id)
            if previous is not None:
                previous.linked_kind = None
                previous.linked_id = None

        entity.note_id = note.id
        note.linked_kind = kind
        note.linked_id = entity_id

    def _unlink(self, note: Note) -> None:
        link = note.link
        if link is not None:
            entity = self._entities[link[0]].get(link[1])
            if entity is not None and entity.note_id == note.id:
                entity.note_id = None
        note.linked_kind = None
        note.linked_id = None

    # ------------------------------------------------------------------
    # Renderer handles
    # ------------------------------------------------------------------

    def correlate_handle(self, kind: EntityKind | str, entity_id: str, handle: Hashable) -> bool:
        """Record that the renderer drew entity as handle (replaces any older handle)."""
        kind = EntityKind(kind)
        entity = self._entities[kind].get(entity_id)
        if entity is None:
            _LOGGER.warning("Handle %s refused for unknown %s %s", handle, kind.value, entity_id)
            return False
        self._handles[(kind, entity_id)] = handle
        entity.renderer_handle = handle
        return True

    def get_handle(self, kind: EntityKind | str, entity_id: str) -> Hashable | None:
        return self._handles.get((EntityKind(kind), entity_id))

    def release_handle(self, kind: EntityKind | str, entity_id: str) -> Hashable | None:
        """Forget the rendered shape of an entity; returns the handle to remove."""
        kind = EntityKind(kind)
        handle = self._handles.pop((kind, entity_id), None)
        entity = self._entities[kind].get(entity_id)
        if entity is not None:
            entity.renderer_handle = None
        return handle

    def handles(self) -> dict[HandleKey, Hashable]:
        return dict(self._handles)

    # ------------------------------------------------------------------
    # Whole-store operations
    # ------------------------------------------------------------------

    def clear(self) -> None:
        for entities in self._entities.values():
            entities.clear()
        self._notes.clear()
        self._handles.clear()

    def load_bulk(self, data: dict) -> BulkLoadReport:
        """
        Replace the whole store from external records.

        Each record is validated on its own; invalid ones are dropped with a
        warning and the rest are loaded. Nothing is touched until every
        record has been checked. Note links are rebuilt from the notes, and
        the handle table starts empty since nothing loaded is drawn yet.
        """
        report = BulkLoadReport()
        if data is None:
            data = {}
        if not isinstance(data, dict):
            _LOGGER.warning("Bulk data must be a mapping, got %s; store left unchanged", type(data).__name__)
            return report
        entities: dict[EntityKind, dict[str, AnnotationEntity]] = {kind: {} for kind in EntityKind}

        for collection, kind_value in COLLECTION_KINDS.items():
            kind = EntityKind(kind_value)
            accepted = rejected = 0
            for record in _collection(data, collection):
                try:
                    entity = entity_from_record(kind, validate_record(kind, record))
                except vol.Invalid as e:
                    _LOGGER.warning("Invalid %s data skipped: %s (%s)", kind.value, record, e)
                    rejected += 1
                    continue
                if entity.id in entities[kind]:
                    _LOGGER.warning("Duplicate %s id %s skipped", kind.value, entity.id)
                    rejected += 1
                    continue
                entities[kind][entity.id] = entity
                accepted += 1
            report.accepted[collection] = accepted
            report.rejected[collection] = rejected

        notes: dict[str, Note] = {}
        rejected = 0
        for record in _collection(data, "notes"):
            try:
                note = note_from_record(NOTE_SCHEMA(record))
            except vol.Invalid as e:
                _LOGGER.warning("Invalid note data skipped: %s (%s)", record, e)
                rejected += 1
                continue
            if note.id in notes:
                _LOGGER.warning("Duplicate note id %s skipped", note.id)
                rejected += 1
                continue
            notes[note.id] = note
        report.accepted["notes"] = len(notes)
        report.rejected["notes"] = rejected

        self._entities = entities
        self._notes = notes
        self._handles = {}

        for note in notes.values():
            link = note.link
            note.linked_kind = None
            note.linked_id = None
            if link is not None:
                self._link(note, *link)

        if report.total_rejected:
            _LOGGER.warning("Bulk load dropped %s invalid records", report.total_rejected)
        return report

    def export_bulk(self) -> dict[str, list[dict]]:
        """All entities and notes in the record format load_bulk() accepts."""
        exported = {
            collection: [entity_to_record(e) for e in self._entities[EntityKind(kind)].values()]
            for collection, kind in COLLECTION_KINDS.items()
        }
        exported["notes"] = [note_to_record(n) for n in self._notes.values()]
        return exported
