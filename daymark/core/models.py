"""Data models for the DayMark application.

This module defines immutable dataclasses representing the core entities:
Event, DailyNote, and the Snapshot exchanged with the remote store.

Timestamps are integer epoch milliseconds. The remote wire format uses
camelCase keys; conversion lives in the to_dict/from_dict methods so that
the rest of the code only ever sees snake_case attributes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .validation import (
    ValidationError,
    validate_color,
    validate_date,
    validate_description,
    validate_event_id,
    validate_note_content,
    validate_time,
    validate_timestamp,
    validate_title,
)


def _require_dict(data: Any, field_name: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValidationError(field_name, f"must be an object, got {type(data).__name__}")
    return data


def _require_key(data: Dict[str, Any], key: str, field_name: str) -> Any:
    if key not in data:
        raise ValidationError(field_name, f"missing required field '{key}'")
    return data[key]


@dataclass(frozen=True)
class Event:
    """Represents a calendar event.

    Attributes:
        id: Opaque unique identifier, stable for the event's lifetime
        title: Display title
        date: Calendar day (YYYY-MM-DD)
        start_time: Optional start time of day (HH:MM)
        end_time: Optional end time of day (HH:MM)
        description: Optional free text
        is_important: Importance flag
        color: Optional hex display color
        icon: Optional icon tag
        created_at: Creation time in epoch ms (0 means "not yet assigned")
    """

    id: str
    title: str
    date: str
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    description: Optional[str] = None
    is_important: bool = False
    color: Optional[str] = None
    icon: Optional[str] = None
    created_at: int = 0

    def validate(self) -> "Event":
        """Check field invariants.

        Returns:
            self, for chaining

        Raises:
            ValidationError: If any field is malformed
        """
        validate_event_id(self.id)
        validate_title(self.title)
        validate_date(self.date)
        validate_time(self.start_time, "start_time")
        validate_time(self.end_time, "end_time")
        validate_description(self.description)
        validate_color(self.color)
        if not isinstance(self.is_important, bool):
            raise ValidationError("is_important", "must be a boolean")
        if self.icon is not None and not isinstance(self.icon, str):
            raise ValidationError("icon", "must be a string")
        validate_timestamp(self.created_at, "created_at")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the wire format. Unset optional fields are omitted."""
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "isImportant": self.is_important,
            "createdAt": self.created_at,
        }
        optional = {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "description": self.description,
            "color": self.color,
            "icon": self.icon,
        }
        data.update({key: value for key, value in optional.items() if value is not None})
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "Event":
        """Parse and validate an event from the wire format.

        Raises:
            ValidationError: If the payload is malformed
        """
        data = _require_dict(data, "event")
        event = cls(
            id=_require_key(data, "id", "event"),
            title=_require_key(data, "title", "event"),
            date=_require_key(data, "date", "event"),
            start_time=data.get("startTime") or None,
            end_time=data.get("endTime") or None,
            description=data.get("description"),
            is_important=bool(data.get("isImportant", False)),
            color=data.get("color") or None,
            icon=data.get("icon") or None,
            created_at=data.get("createdAt", 0),
        )
        return event.validate()


@dataclass(frozen=True)
class DailyNote:
    """Represents the journal note for one calendar day.

    The date is the identity: there is at most one note per day.

    Attributes:
        date: Calendar day (YYYY-MM-DD)
        content: Free text, may be empty
        updated_at: Last save time in epoch ms
    """

    date: str
    content: str
    updated_at: int

    @property
    def is_present(self) -> bool:
        """Whether the note counts as written (non-blank content)."""
        return bool(self.content.strip())

    def to_dict(self) -> Dict[str, Any]:
        return {"date": self.date, "content": self.content, "updatedAt": self.updated_at}

    @classmethod
    def from_dict(cls, data: Any) -> "DailyNote":
        data = _require_dict(data, "note")
        return cls(
            date=validate_date(_require_key(data, "date", "note")),
            content=validate_note_content(data.get("content", "")),
            updated_at=validate_timestamp(data.get("updatedAt", 0), "updatedAt"),
        )


@dataclass(frozen=True)
class Snapshot:
    """The complete dataset exchanged with the remote store.

    A snapshot is always a whole replacement: there is no delta protocol.
    """

    events: List[Event] = field(default_factory=list)
    notes: List[DailyNote] = field(default_factory=list)
    updated_at: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "events": [event.to_dict() for event in self.events],
            "notes": [note.to_dict() for note in self.notes],
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Snapshot":
        """Parse and validate a snapshot body.

        Missing lists are treated as empty so that a freshly created
        resource (``{}``) reads as an empty snapshot.

        Raises:
            ValidationError: If the body or any record is malformed
        """
        data = _require_dict(data, "snapshot")
        events_data = data.get("events") or []
        notes_data = data.get("notes") or []
        if not isinstance(events_data, list):
            raise ValidationError("events", "must be a list")
        if not isinstance(notes_data, list):
            raise ValidationError("notes", "must be a list")

        events = [Event.from_dict(e) for e in events_data]
        seen_ids = set()
        for event in events:
            if event.id in seen_ids:
                raise ValidationError("events", f"duplicate event id '{event.id}'")
            seen_ids.add(event.id)

        notes = [DailyNote.from_dict(n) for n in notes_data]
        if len({note.date for note in notes}) != len(notes):
            raise ValidationError("notes", "more than one note for the same date")

        return cls(
            events=events,
            notes=notes,
            updated_at=validate_timestamp(data.get("updatedAt", 0), "updatedAt"),
        )


@dataclass
class SyncSession:
    """Sync metadata for one local profile.

    Owned by a single SyncEngine and persisted through Config so that it
    survives restarts. Never shared through module globals.

    Attributes:
        remote_id: Identifier of the remote snapshot (None when logged out)
        last_sync_timestamp: updated_at of the last pushed or pulled snapshot
        dirty: True while local writes have not been confirmed pushed
        force_pull: Next pull applies the remote regardless of timestamps/dirty
        authenticated: Whether a login has completed on this profile
    """

    remote_id: Optional[str] = None
    last_sync_timestamp: int = 0
    dirty: bool = False
    force_pull: bool = False
    authenticated: bool = False
