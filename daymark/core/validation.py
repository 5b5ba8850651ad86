"""Input validation for DayMark.

This module provides validation functions for all user inputs.
All validators raise ValidationError with descriptive messages.
"""

from __future__ import annotations

import re
from datetime import date as date_type
from typing import Any, Optional

__all__ = [
    "ValidationError",
    "validate_date",
    "validate_time",
    "validate_event_id",
    "validate_title",
    "validate_description",
    "validate_note_content",
    "validate_color",
    "validate_timestamp",
]

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 10_000
MAX_NOTE_CONTENT_LENGTH = 100_000
MAX_EVENT_ID_LENGTH = 64

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


class ValidationError(ValueError):
    """Validation error with field and message attributes."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")

    def __str__(self) -> str:
        return f"{self.field}: {self.message}"

    def __repr__(self) -> str:
        return f"ValidationError(field='{self.field}', message='{self.message}')"


def validate_date(value: Any, field_name: str = "date") -> str:
    """Validate a calendar day string in YYYY-MM-DD format.

    Args:
        value: Candidate date string
        field_name: Field name used in the error message

    Returns:
        The validated date string

    Raises:
        ValidationError: If the value is not a real calendar day
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, f"must be a string, got {type(value).__name__}")
    if not _DATE_RE.match(value):
        raise ValidationError(field_name, f"must be in YYYY-MM-DD format, got '{value}'")
    try:
        date_type.fromisoformat(value)
    except ValueError:
        raise ValidationError(field_name, f"'{value}' is not a valid calendar day") from None
    return value


def validate_time(value: Any, field_name: str = "time") -> Optional[str]:
    """Validate an optional HH:MM time-of-day string."""
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValidationError(field_name, f"must be in HH:MM format, got '{value}'")
    return value


def validate_event_id(value: Any, field_name: str = "id") -> str:
    """Validate an opaque event identifier."""
    if not isinstance(value, str):
        raise ValidationError(field_name, f"must be a string, got {type(value).__name__}")
    if not value.strip():
        raise ValidationError(field_name, "cannot be empty")
    if len(value) > MAX_EVENT_ID_LENGTH:
        raise ValidationError(
            field_name, f"must be at most {MAX_EVENT_ID_LENGTH} characters"
        )
    return value


def validate_title(value: Any, field_name: str = "title") -> str:
    if not isinstance(value, str):
        raise ValidationError(field_name, f"must be a string, got {type(value).__name__}")
    if not value.strip():
        raise ValidationError(field_name, "cannot be empty")
    if len(value) > MAX_TITLE_LENGTH:
        raise ValidationError(field_name, f"must be at most {MAX_TITLE_LENGTH} characters")
    return value


def validate_description(value: Any, field_name: str = "description") -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(field_name, f"must be a string, got {type(value).__name__}")
    if len(value) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(
            field_name, f"must be at most {MAX_DESCRIPTION_LENGTH} characters"
        )
    return value


def validate_note_content(value: Any, field_name: str = "content") -> str:
    """Validate daily note content. Empty content is allowed."""
    if not isinstance(value, str):
        raise ValidationError(field_name, f"must be a string, got {type(value).__name__}")
    if len(value) > MAX_NOTE_CONTENT_LENGTH:
        raise ValidationError(
            field_name, f"must be at most {MAX_NOTE_CONTENT_LENGTH} characters"
        )
    return value


def validate_color(value: Any, field_name: str = "color") -> Optional[str]:
    """Validate an optional hex display color (#rgb or #rrggbb)."""
    if value is None or value == "":
        return None
    if not isinstance(value, str) or not _COLOR_RE.match(value):
        raise ValidationError(field_name, f"must be a hex color like #a31621, got '{value}'")
    return value


def validate_timestamp(value: Any, field_name: str = "timestamp") -> int:
    """Validate an epoch-milliseconds timestamp."""
    # bool is an int subclass and would slip through otherwise
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field_name, f"must be an integer, got {type(value).__name__}")
    if value < 0:
        raise ValidationError(field_name, "cannot be negative")
    return value
