"""Database operations for DayMark.

This module provides the local store: two tables in one SQLite file,
``events`` keyed by event id (with a secondary index on ``date``) and
``daily_notes`` keyed by date. Every write opens and commits its own
transaction before returning, so writes from one caller are applied in
call order.

The store is a pure persistence layer. Marking state dirty, notifying
other contexts and scheduling pushes happen in ``journal.Journal``.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Iterator, List, Union

from .models import DailyNote, Event
from .timestamp_utils import now_ms
from .validation import validate_date, validate_event_id, validate_note_content

logger = logging.getLogger(__name__)

__all__ = ["Database", "StorageError", "SCHEMA_VERSION"]

# Each entry upgrades the schema from version N-1 to N.
MIGRATIONS = {
    1: [
        """
        CREATE TABLE IF NOT EXISTS events (
            id TEXT PRIMARY KEY,
            title TEXT NOT NULL,
            date TEXT NOT NULL,
            start_time TEXT,
            end_time TEXT,
            description TEXT,
            is_important INTEGER NOT NULL DEFAULT 0,
            color TEXT,
            icon TEXT,
            created_at INTEGER NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_events_date ON events(date)",
        "CREATE INDEX IF NOT EXISTS idx_events_created_at ON events(created_at)",
    ],
    2: [
        """
        CREATE TABLE IF NOT EXISTS daily_notes (
            date TEXT PRIMARY KEY,
            content TEXT NOT NULL DEFAULT '',
            updated_at INTEGER NOT NULL
        )
        """,
    ],
}

SCHEMA_VERSION = max(MIGRATIONS)


class StorageError(Exception):
    """Local persistence failed (disk full, corruption, engine unavailable)."""


class Database:
    """SQLite-backed local store for events and daily notes."""

    def __init__(self, db_path: Union[Path, str]) -> None:
        """Open (and create or upgrade) the database.

        Args:
            db_path: Path to the SQLite database file, or ':memory:' for in-memory

        Raises:
            StorageError: If the file cannot be opened or has a newer schema
        """
        self.db_path = str(db_path)
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path)
            self.conn.row_factory = sqlite3.Row
            self._init_schema()
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open database at {self.db_path}: {e}") from e
        logger.info(f"Opened database at {self.db_path}")

    def __enter__(self) -> "Database":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _init_schema(self) -> None:
        """Apply any migrations newer than the on-disk schema version."""
        version = self.conn.execute("PRAGMA user_version").fetchone()[0]
        if version > SCHEMA_VERSION:
            raise StorageError(
                f"Database schema version {version} is newer than supported "
                f"version {SCHEMA_VERSION}"
            )
        for target in range(version + 1, SCHEMA_VERSION + 1):
            with self.conn:
                for statement in MIGRATIONS[target]:
                    self.conn.execute(statement)
                self.conn.execute(f"PRAGMA user_version = {target}")
            logger.info(f"Upgraded database schema to version {target}")

    @contextmanager
    def _guard(self, action: str) -> Iterator[None]:
        """Translate sqlite3 failures into StorageError."""
        try:
            yield
        except sqlite3.Error as e:
            logger.error(f"Storage failure while {action}: {e}")
            raise StorageError(f"Failed {action}: {e}") from e

    def get_schema_version(self) -> int:
        with self._guard("reading schema version"):
            return self.conn.execute("PRAGMA user_version").fetchone()[0]

    # ============================================================================
    # Events
    # ============================================================================

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> Event:
        return Event(
            id=row["id"],
            title=row["title"],
            date=row["date"],
            start_time=row["start_time"],
            end_time=row["end_time"],
            description=row["description"],
            is_important=bool(row["is_important"]),
            color=row["color"],
            icon=row["icon"],
            created_at=row["created_at"],
        )

    def get_all_events(self) -> List[Event]:
        """Get every stored event, ordered by date then creation time."""
        with self._guard("reading events"):
            rows = self.conn.execute(
                "SELECT * FROM events ORDER BY date, created_at, id"
            ).fetchall()
        return [self._row_to_event(row) for row in rows]

    def get_events_by_date(self, date: str) -> List[Event]:
        """Get the events of one calendar day using the date index."""
        validate_date(date)
        with self._guard("reading events by date"):
            rows = self.conn.execute(
                "SELECT * FROM events WHERE date = ? ORDER BY created_at, id", (date,)
            ).fetchall()
        return [self._row_to_event(row) for row in rows]

    def get_event(self, event_id: str) -> Union[Event, None]:
        with self._guard("reading event"):
            row = self.conn.execute(
                "SELECT * FROM events WHERE id = ?", (event_id,)
            ).fetchone()
        return self._row_to_event(row) if row else None

    def _insert_event(self, event: Event) -> None:
        self.conn.execute(
            "INSERT INTO events "
            "(id, title, date, start_time, end_time, description, "
            " is_important, color, icon, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET "
            "title = excluded.title, date = excluded.date, "
            "start_time = excluded.start_time, end_time = excluded.end_time, "
            "description = excluded.description, "
            "is_important = excluded.is_important, "
            "color = excluded.color, icon = excluded.icon",
            (
                event.id,
                event.title,
                event.date,
                event.start_time,
                event.end_time,
                event.description,
                int(event.is_important),
                event.color,
                event.icon,
                event.created_at,
            ),
        )

    def save_event(self, event: Event) -> Event:
        """Insert or fully replace an event by id.

        The creation timestamp is assigned on first save when unset and is
        never changed afterwards.

        Args:
            event: Event to store

        Returns:
            The event as stored (with its creation timestamp)
        """
        event.validate()
        with self._guard("saving event"):
            with self.conn:
                row = self.conn.execute(
                    "SELECT created_at FROM events WHERE id = ?", (event.id,)
                ).fetchone()
                if row is not None:
                    created_at = row["created_at"]
                else:
                    created_at = event.created_at or now_ms()
                stored = replace(event, created_at=created_at)
                self._insert_event(stored)
        logger.debug(f"Saved event {stored.id} on {stored.date}")
        return stored

    def delete_event(self, event_id: str) -> bool:
        """Delete an event by id. Deleting a missing id is not an error.

        Returns:
            True if a row was removed
        """
        validate_event_id(event_id)
        with self._guard("deleting event"):
            with self.conn:
                cursor = self.conn.execute("DELETE FROM events WHERE id = ?", (event_id,))
        return cursor.rowcount > 0

    # ============================================================================
    # Daily notes
    # ============================================================================

    def get_daily_note(self, date: str) -> str:
        """Get the note content for a day, or '' if there is none."""
        validate_date(date)
        with self._guard("reading daily note"):
            row = self.conn.execute(
                "SELECT content FROM daily_notes WHERE date = ?", (date,)
            ).fetchone()
        return row["content"] if row else ""

    def save_daily_note(self, date: str, content: str) -> DailyNote:
        """Upsert the note for a day, stamped with the current time."""
        validate_date(date)
        validate_note_content(content)
        note = DailyNote(date=date, content=content, updated_at=now_ms())
        with self._guard("saving daily note"):
            with self.conn:
                self.conn.execute(
                    "INSERT OR REPLACE INTO daily_notes (date, content, updated_at) "
                    "VALUES (?, ?, ?)",
                    (note.date, note.content, note.updated_at),
                )
        return note

    def get_all_notes(self) -> List[DailyNote]:
        """Get every note record, including ones with empty content."""
        with self._guard("reading daily notes"):
            rows = self.conn.execute(
                "SELECT date, content, updated_at FROM daily_notes ORDER BY date"
            ).fetchall()
        return [
            DailyNote(date=row["date"], content=row["content"], updated_at=row["updated_at"])
            for row in rows
        ]

    def get_all_note_dates(self) -> List[str]:
        """Get the dates whose note has non-blank content."""
        return [note.date for note in self.get_all_notes() if note.is_present]

    # ============================================================================
    # Whole-dataset operations
    # ============================================================================

    def replace_all(self, events: Iterable[Event], notes: Iterable[DailyNote]) -> None:
        """Clear both tables and repopulate them in one transaction.

        Used when a remote snapshot overwrites local state. Records are
        stored as given, creation timestamps included.
        """
        with self._guard("replacing local data"):
            with self.conn:
                self.conn.execute("DELETE FROM events")
                self.conn.execute("DELETE FROM daily_notes")
                for event in events:
                    self._insert_event(event)
                self.conn.executemany(
                    "INSERT INTO daily_notes (date, content, updated_at) VALUES (?, ?, ?)",
                    [(n.date, n.content, n.updated_at) for n in notes],
                )
        logger.info("Replaced local events and notes")

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
        logger.info("Closed database connection")
