"""Unit tests for input validation.

Tests all validation functions in daymark/core/validation.py.
"""

from __future__ import annotations

import pytest

from daymark.core.validation import (
    MAX_EVENT_ID_LENGTH,
    MAX_NOTE_CONTENT_LENGTH,
    MAX_TITLE_LENGTH,
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


@pytest.mark.unit
class TestValidationError:
    """Tests for the ValidationError type."""

    def test_carries_field_and_message(self) -> None:
        error = ValidationError("date", "must be valid")
        assert error.field == "date"
        assert error.message == "must be valid"
        assert str(error) == "date: must be valid"

    def test_is_value_error(self) -> None:
        assert isinstance(ValidationError("x", "y"), ValueError)


@pytest.mark.unit
class TestValidateDate:
    """Tests for validate_date."""

    def test_valid_date(self) -> None:
        assert validate_date("2025-01-15") == "2025-01-15"

    def test_leap_day(self) -> None:
        assert validate_date("2024-02-29") == "2024-02-29"

    @pytest.mark.parametrize("value", ["2025-1-15", "15-01-2025", "2025/01/15", "", "2025-01-15T00:00"])
    def test_wrong_format(self, value: str) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_date(value)
        assert exc_info.value.field == "date"

    @pytest.mark.parametrize("value", ["2025-02-30", "2025-13-01", "2023-02-29"])
    def test_impossible_day(self, value: str) -> None:
        with pytest.raises(ValidationError, match="not a valid calendar day"):
            validate_date(value)

    def test_non_string(self) -> None:
        with pytest.raises(ValidationError, match="must be a string"):
            validate_date(20250115)

    def test_custom_field_name(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate_date("nope", "note.date")
        assert exc_info.value.field == "note.date"


@pytest.mark.unit
class TestValidateTime:
    """Tests for validate_time."""

    @pytest.mark.parametrize("value", ["00:00", "09:30", "23:59"])
    def test_valid_time(self, value: str) -> None:
        assert validate_time(value) == value

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_is_none(self, value: str) -> None:
        assert validate_time(value) is None

    @pytest.mark.parametrize("value", ["24:00", "9:30", "12:60", "noon", 1200])
    def test_invalid_time(self, value: object) -> None:
        with pytest.raises(ValidationError, match="HH:MM"):
            validate_time(value, "start_time")


@pytest.mark.unit
class TestValidateEventId:
    """Tests for validate_event_id."""

    def test_valid_ids(self) -> None:
        assert validate_event_id("e1") == "e1"
        assert validate_event_id("0193a0b2c3d47e8f9a0b1c2d3e4f5a6b") == "0193a0b2c3d47e8f9a0b1c2d3e4f5a6b"

    @pytest.mark.parametrize("value", ["", "   "])
    def test_empty(self, value: str) -> None:
        with pytest.raises(ValidationError, match="cannot be empty"):
            validate_event_id(value)

    def test_too_long(self) -> None:
        with pytest.raises(ValidationError, match="at most"):
            validate_event_id("x" * (MAX_EVENT_ID_LENGTH + 1))

    def test_non_string(self) -> None:
        with pytest.raises(ValidationError):
            validate_event_id(42)


@pytest.mark.unit
class TestValidateTitleAndDescription:
    """Tests for validate_title and validate_description."""

    def test_valid_title(self) -> None:
        assert validate_title("Lunch") == "Lunch"

    def test_blank_title(self) -> None:
        with pytest.raises(ValidationError, match="cannot be empty"):
            validate_title("  ")

    def test_title_too_long(self) -> None:
        validate_title("a" * MAX_TITLE_LENGTH)
        with pytest.raises(ValidationError):
            validate_title("a" * (MAX_TITLE_LENGTH + 1))

    def test_description_optional(self) -> None:
        assert validate_description(None) is None
        assert validate_description("") == ""

    def test_description_type(self) -> None:
        with pytest.raises(ValidationError):
            validate_description(["not", "text"])


@pytest.mark.unit
class TestValidateNoteContent:
    """Tests for validate_note_content."""

    def test_empty_allowed(self) -> None:
        assert validate_note_content("") == ""

    def test_unicode(self) -> None:
        assert validate_note_content("שלום עולם") == "שלום עולם"

    def test_too_long(self) -> None:
        with pytest.raises(ValidationError):
            validate_note_content("a" * (MAX_NOTE_CONTENT_LENGTH + 1))

    def test_none_rejected(self) -> None:
        with pytest.raises(ValidationError):
            validate_note_content(None)


@pytest.mark.unit
class TestValidateColor:
    """Tests for validate_color."""

    @pytest.mark.parametrize("value", ["#fff", "#A31621", "#a31621"])
    def test_valid(self, value: str) -> None:
        assert validate_color(value) == value

    @pytest.mark.parametrize("value", [None, ""])
    def test_empty_is_none(self, value: str) -> None:
        assert validate_color(value) is None

    @pytest.mark.parametrize("value", ["red", "#ffff", "a31621", "#ggg"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValidationError, match="hex color"):
            validate_color(value)


@pytest.mark.unit
class TestValidateTimestamp:
    """Tests for validate_timestamp."""

    def test_valid(self) -> None:
        assert validate_timestamp(0) == 0
        assert validate_timestamp(1736942400000) == 1736942400000

    def test_negative(self) -> None:
        with pytest.raises(ValidationError, match="negative"):
            validate_timestamp(-1)

    @pytest.mark.parametrize("value", [True, 1.5, "123", None])
    def test_not_an_integer(self, value: object) -> None:
        with pytest.raises(ValidationError, match="integer"):
            validate_timestamp(value, "updatedAt")
