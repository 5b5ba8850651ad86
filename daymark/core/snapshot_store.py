"""Server-side storage for remote snapshots.

One row per remote id holding the latest whole snapshot as JSON. The
server keeps no history: each replace overwrites the previous body.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .database import StorageError
from .models import Snapshot
from .timestamp_utils import now_ms

logger = logging.getLogger(__name__)

__all__ = ["SnapshotExists", "SnapshotStore"]


class SnapshotExists(Exception):
    """A snapshot with the requested id already exists."""


class SnapshotStore:
    """SQLite table of snapshots keyed by remote id.

    Safe to share between the request threads of the web server.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        self.db_path = str(db_path)
        self._lock = threading.Lock()
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
            with self.conn:
                self.conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS snapshots (
                        id TEXT PRIMARY KEY,
                        body TEXT NOT NULL,
                        updated_at INTEGER NOT NULL,
                        stored_at INTEGER NOT NULL
                    )
                    """
                )
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"Cannot open snapshot store at {self.db_path}: {e}") from e
        logger.info(f"Opened snapshot store at {self.db_path}")

    def get(self, remote_id: str) -> Optional[Dict[str, Any]]:
        """Get the stored snapshot body, or None if the id is unknown."""
        with self._lock:
            row = self.conn.execute(
                "SELECT body FROM snapshots WHERE id = ?", (remote_id,)
            ).fetchone()
        return json.loads(row[0]) if row else None

    def create(self, remote_id: str, snapshot: Snapshot) -> None:
        """Store a new snapshot.

        Raises:
            SnapshotExists: If the id is already taken
        """
        body = json.dumps(snapshot.to_dict(), ensure_ascii=False)
        with self._lock:
            try:
                with self.conn:
                    self.conn.execute(
                        "INSERT INTO snapshots (id, body, updated_at, stored_at) "
                        "VALUES (?, ?, ?, ?)",
                        (remote_id, body, snapshot.updated_at, now_ms()),
                    )
            except sqlite3.IntegrityError:
                raise SnapshotExists(remote_id) from None
        logger.info(f"Created snapshot {remote_id}")

    def replace(self, remote_id: str, snapshot: Snapshot) -> bool:
        """Overwrite an existing snapshot.

        Returns:
            False if there is no snapshot with this id
        """
        body = json.dumps(snapshot.to_dict(), ensure_ascii=False)
        with self._lock:
            with self.conn:
                cursor = self.conn.execute(
                    "UPDATE snapshots SET body = ?, updated_at = ?, stored_at = ? WHERE id = ?",
                    (body, snapshot.updated_at, now_ms(), remote_id),
                )
        if cursor.rowcount == 0:
            return False
        logger.debug(f"Replaced snapshot {remote_id} (updatedAt={snapshot.updated_at})")
        return True

    def count(self) -> int:
        with self._lock:
            return self.conn.execute("SELECT COUNT(*) FROM snapshots").fetchone()[0]

    def close(self) -> None:
        with self._lock:
            self.conn.close()
