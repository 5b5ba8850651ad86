"""Unit tests for data models and the snapshot wire format."""

from __future__ import annotations

import pytest

from daymark.core.models import DailyNote, Event, Snapshot, SyncSession
from daymark.core.validation import ValidationError


@pytest.mark.unit
class TestEvent:
    """Tests for Event."""

    def test_to_dict_uses_camel_case(self) -> None:
        event = Event(id="e1", title="Lunch", date="2025-01-15", start_time="12:00",
                      end_time="13:00", is_important=True, created_at=5)
        data = event.to_dict()
        assert data == {
            "id": "e1",
            "title": "Lunch",
            "date": "2025-01-15",
            "startTime": "12:00",
            "endTime": "13:00",
            "isImportant": True,
            "createdAt": 5,
        }

    def test_to_dict_omits_unset_optionals(self) -> None:
        data = Event(id="e1", title="Lunch", date="2025-01-15").to_dict()
        for key in ("startTime", "endTime", "description", "color", "icon"):
            assert key not in data

    def test_from_dict_round_trip(self) -> None:
        event = Event(id="e4", title="Birthday", date="2025-02-01", description="Party",
                      is_important=True, color="#ff8800", icon="cake", created_at=7)
        assert Event.from_dict(event.to_dict()) == event

    def test_from_dict_defaults(self) -> None:
        event = Event.from_dict({"id": "e1", "title": "Lunch", "date": "2025-01-15"})
        assert event.is_important is False
        assert event.created_at == 0
        assert event.start_time is None

    def test_from_dict_empty_strings_become_none(self) -> None:
        event = Event.from_dict({"id": "e1", "title": "Lunch", "date": "2025-01-15",
                                 "startTime": "", "color": ""})
        assert event.start_time is None
        assert event.color is None

    def test_from_dict_missing_required(self) -> None:
        with pytest.raises(ValidationError, match="missing required field 'title'"):
            Event.from_dict({"id": "e1", "date": "2025-01-15"})

    def test_from_dict_invalid_field(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            Event.from_dict({"id": "e1", "title": "Lunch", "date": "2025-15-01"})
        assert exc_info.value.field == "date"

    def test_from_dict_not_an_object(self) -> None:
        with pytest.raises(ValidationError, match="must be an object"):
            Event.from_dict(["e1"])

    def test_is_frozen(self) -> None:
        event = Event(id="e1", title="Lunch", date="2025-01-15")
        with pytest.raises(AttributeError):
            event.title = "Dinner"  # type: ignore[misc]


@pytest.mark.unit
class TestDailyNote:
    """Tests for DailyNote."""

    def test_is_present(self) -> None:
        assert DailyNote("2025-01-15", "text", 1).is_present
        assert not DailyNote("2025-01-15", "", 1).is_present
        assert not DailyNote("2025-01-15", "  \n", 1).is_present

    def test_wire_format(self) -> None:
        note = DailyNote("2025-01-15", "Busy day.", 10)
        assert note.to_dict() == {"date": "2025-01-15", "content": "Busy day.", "updatedAt": 10}
        assert DailyNote.from_dict(note.to_dict()) == note

    def test_from_dict_defaults(self) -> None:
        note = DailyNote.from_dict({"date": "2025-01-15"})
        assert note.content == ""
        assert note.updated_at == 0


@pytest.mark.unit
class TestSnapshot:
    """Tests for Snapshot."""

    def test_empty_body_is_empty_snapshot(self) -> None:
        snapshot = Snapshot.from_dict({})
        assert snapshot.events == []
        assert snapshot.notes == []
        assert snapshot.updated_at == 0

    def test_round_trip(self, sample_events: list) -> None:
        snapshot = Snapshot(
            events=sample_events,
            notes=[DailyNote("2025-01-15", "Busy day.", 3)],
            updated_at=99,
        )
        assert Snapshot.from_dict(snapshot.to_dict()) == snapshot

    def test_duplicate_event_ids_rejected(self) -> None:
        event = {"id": "e1", "title": "Lunch", "date": "2025-01-15"}
        with pytest.raises(ValidationError, match="duplicate event id"):
            Snapshot.from_dict({"events": [event, event], "updatedAt": 1})

    def test_duplicate_note_dates_rejected(self) -> None:
        note = {"date": "2025-01-15", "content": "x", "updatedAt": 1}
        with pytest.raises(ValidationError, match="same date"):
            Snapshot.from_dict({"notes": [note, note], "updatedAt": 1})

    def test_events_must_be_list(self) -> None:
        with pytest.raises(ValidationError):
            Snapshot.from_dict({"events": {"id": "e1"}})

    def test_invalid_updated_at(self) -> None:
        with pytest.raises(ValidationError):
            Snapshot.from_dict({"updatedAt": "yesterday"})


@pytest.mark.unit
class TestSyncSession:
    """Tests for SyncSession defaults."""

    def test_defaults(self) -> None:
        session = SyncSession()
        assert session.remote_id is None
        assert session.last_sync_timestamp == 0
        assert session.dirty is False
        assert session.force_pull is False
        assert session.authenticated is False
