"""Journal facade for DayMark.

The Journal is what user interfaces call. It reads from the local store
only, and after every successful local write it:

1. marks the sync session dirty,
2. notifies this and every other open context,
3. schedules a debounced push.

A write always completes locally whatever the network state is.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from typing import List, Optional

from uuid6 import uuid7

from .config import Config
from .database import Database, StorageError
from .models import DailyNote, Event, Snapshot
from .notifier import ChangeNotifier, DEFAULT_CHANNEL
from .sync import SyncEngine
from .sync_client import SyncClient
from .timestamp_utils import now_ms
from .validation import ValidationError

logger = logging.getLogger(__name__)

__all__ = ["Journal", "new_event_id", "open_journal"]


def new_event_id() -> str:
    """Generate a fresh event id (UUID7 hex, 32 characters)."""
    return uuid7().hex


class Journal:
    """Events and daily notes of one profile, wired to sync and notification."""

    def __init__(
        self,
        db: Database,
        engine: SyncEngine,
        notifier: ChangeNotifier,
        degraded: bool = False,
    ) -> None:
        """Initialize journal.

        Args:
            db: Local store
            engine: Sync engine bound to the same store
            notifier: Change notifier of this context
            degraded: True when running on a temporary in-memory store
        """
        self.db = db
        self.engine = engine
        self.notifier = notifier
        self.degraded = degraded

    def _after_write(self) -> None:
        self.engine.mark_dirty()
        self.notifier.notify_write()
        self.engine.schedule_push()

    # ===== Events =====

    async def get_all_events(self) -> List[Event]:
        return self.db.get_all_events()

    async def get_events_by_date(self, date: str) -> List[Event]:
        return self.db.get_events_by_date(date)

    async def save_event(self, event: Event) -> Event:
        """Create or replace an event by id.

        Returns:
            The stored event, with its creation timestamp
        """
        stored = self.db.save_event(event)
        self._after_write()
        return stored

    async def delete_event(self, event_id: str) -> bool:
        """Delete an event. Deleting an unknown id succeeds.

        Returns:
            True if an event was removed
        """
        deleted = self.db.delete_event(event_id)
        self._after_write()
        return deleted

    # ===== Daily notes =====

    async def get_daily_note(self, date: str) -> str:
        return self.db.get_daily_note(date)

    async def save_daily_note(self, date: str, content: str) -> DailyNote:
        note = self.db.save_daily_note(date, content)
        self._after_write()
        return note

    async def get_all_note_dates(self) -> List[str]:
        """Dates that have a non-empty note."""
        return self.db.get_all_note_dates()

    # ===== Backup =====

    async def export_backup(self) -> str:
        """Encode the whole local dataset as a self-contained text blob.

        The blob is base64 of the snapshot JSON and can be imported on any
        profile without a server.
        """
        snapshot = Snapshot(
            events=self.db.get_all_events(),
            notes=self.db.get_all_notes(),
            updated_at=now_ms(),
        )
        payload = json.dumps(snapshot.to_dict(), ensure_ascii=False, separators=(",", ":"))
        return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii")

    async def import_backup(self, blob: str) -> Snapshot:
        """Replace local data with the content of a backup blob.

        Counts as a local write: the result is pushed on the next sync.

        Raises:
            ValidationError: If the blob is not a valid backup
        """
        try:
            raw = base64.urlsafe_b64decode(blob.strip().encode("ascii"))
            data = json.loads(raw.decode("utf-8"))
        except (binascii.Error, UnicodeError, ValueError) as e:
            raise ValidationError("backup", f"not a valid backup blob ({e})") from e
        snapshot = Snapshot.from_dict(data)

        self.db.replace_all(snapshot.events, snapshot.notes)
        self._after_write()
        logger.info(
            f"Imported backup with {len(snapshot.events)} events and {len(snapshot.notes)} notes"
        )
        return snapshot

    async def close(self) -> None:
        """Stop background sync and release resources."""
        await self.engine.stop()
        self.notifier.close()
        self.db.close()


def open_journal(
    config: Config,
    client: Optional[SyncClient] = None,
    channel_name: str = DEFAULT_CHANNEL,
) -> Journal:
    """Open the journal of a profile.

    Falls back to a temporary in-memory store (``degraded=True``) if the
    database file cannot be opened, so the application stays usable for
    the session.

    Args:
        config: Profile configuration
        client: Sync client to use (default: one for the configured server)
        channel_name: Broadcast channel shared by the profile's contexts

    Returns:
        A ready Journal. Call ``journal.engine.start()`` inside a running
        event loop to begin polling.
    """
    degraded = False
    try:
        db = Database(config.get_database_file())
    except StorageError as e:
        logger.warning(f"Local database unavailable, using in-memory store: {e}")
        db = Database(":memory:")
        degraded = True

    if client is None:
        client = SyncClient(config.get_server_url(), timeout=config.get_request_timeout())
    notifier = ChangeNotifier(channel_name)
    engine = SyncEngine(db, client, config, notifier)
    return Journal(db, engine, notifier, degraded=degraded)
