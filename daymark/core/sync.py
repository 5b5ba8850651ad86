"""Reconciliation engine for DayMark.

This module decides, for one local profile, whether to push local state to
the remote snapshot, pull the remote snapshot over local state, or do
nothing. The policy is last-writer-wins at whole-snapshot granularity:

- Push: every local write marks the session dirty and schedules a
  debounced push of the complete local dataset. A push clears the dirty
  flag once the remote confirms it.
- Pull: a poll loop fetches the remote snapshot. It replaces local data
  when the remote is strictly newer than the last reconciled timestamp
  and no local writes are pending. Pending local writes always win over
  a pull; the next push overwrites the remote regardless.
- Token import sets force_pull, which applies the next fetched snapshot
  even while dirty. Pushes are held back until that pull has run, so the
  imported snapshot is never overwritten by the data it is meant to replace.

Known limitation: while a profile keeps writing locally faster than it can
push, it never pulls, so genuinely newer edits from another device stay
invisible until a push succeeds and then get overwritten by it.

Only one push or pull runs at a time per engine (is_syncing). This guard
is in-memory; two processes on the same profile may race a push.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .config import Config
from .database import Database, StorageError
from .identity import InvalidToken, derive_remote_id, normalize_token
from .models import Snapshot, SyncSession
from .notifier import ChangeEvent, ChangeNotifier
from .sync_client import RemoteNotFound, SyncClient, SyncTransportError
from .timestamp_utils import next_timestamp

logger = logging.getLogger(__name__)

__all__ = ["SyncEngine", "SyncResult", "SyncStatus"]

SKIP_OFFLINE = "offline"
SKIP_LOGGED_OUT = "not-logged-in"
SKIP_BUSY = "sync-in-progress"
SKIP_DIRTY = "local-changes-pending"
SKIP_UP_TO_DATE = "up-to-date"
SKIP_REMOTE_MISSING = "remote-missing"
SKIP_PULL_PENDING = "imported-snapshot-pending"


class SyncStatus(str, Enum):
    """Observable state of the engine."""

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass
class SyncResult:
    """Result of a push, pull or login operation."""

    success: bool
    action: str  # "push", "pull", "create"
    skipped_reason: Optional[str] = None
    events: int = 0
    notes: int = 0
    updated_at: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


class SyncEngine:
    """Push/pull state machine bound to one local store and one remote id."""

    def __init__(
        self,
        db: Database,
        client: SyncClient,
        config: Config,
        notifier: ChangeNotifier,
        poll_interval: Optional[float] = None,
        push_delay: Optional[float] = None,
    ) -> None:
        """Initialize sync engine.

        Args:
            db: Local store
            client: Transport to the remote snapshot server
            config: Config holding the persisted session
            notifier: Change notifier of this context
            poll_interval: Seconds between pulls (default from config)
            push_delay: Debounce delay before a push (default from config)
        """
        self.db = db
        self.client = client
        self.config = config
        self.notifier = notifier
        self.poll_interval = poll_interval if poll_interval is not None else config.get_poll_interval()
        self.push_delay = push_delay if push_delay is not None else config.get_push_delay()

        self.session: SyncSession = config.load_session()
        self.status = SyncStatus.IDLE
        self.last_error: Optional[str] = None
        self.online = True
        self.is_syncing = False

        self._write_seq = 0
        self._push_timer: Optional[asyncio.TimerHandle] = None
        self._push_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None

    # ============================================================================
    # Session helpers
    # ============================================================================

    @property
    def remote_id(self) -> Optional[str]:
        return self.session.remote_id

    def _save_session(self) -> None:
        self.config.save_session(self.session)

    def _set_status(self, status: SyncStatus, error: Optional[str] = None) -> None:
        self.status = status
        self.last_error = error

    def _skip_reason(self) -> Optional[str]:
        """Check the guards shared by push and pull."""
        if not self.online:
            return SKIP_OFFLINE
        if not self.session.remote_id:
            return SKIP_LOGGED_OUT
        if self.is_syncing:
            return SKIP_BUSY
        return None

    def get_status(self) -> Dict[str, Any]:
        """Summarize sync state for display."""
        return {
            "status": self.status.value,
            "remote_id": self.session.remote_id,
            "authenticated": self.session.authenticated,
            "last_sync_timestamp": self.session.last_sync_timestamp,
            "dirty": self.session.dirty,
            "force_pull": self.session.force_pull,
            "online": self.online,
            "last_error": self.last_error,
        }

    # ============================================================================
    # Write path
    # ============================================================================

    def mark_dirty(self) -> None:
        """Record that a local write has not been pushed yet."""
        self._write_seq += 1
        if not self.session.dirty:
            self.session.dirty = True
            self._save_session()

    def schedule_push(self) -> None:
        """(Re)start the debounce timer for a push.

        Needs a running event loop; without one the push waits for the
        next trigger (another write, a flush, or the poll loop).
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; push deferred")
            return
        if self._push_timer is not None:
            self._push_timer.cancel()
        self._push_timer = loop.call_later(self.push_delay, self._start_scheduled_push)

    def _start_scheduled_push(self) -> None:
        self._push_timer = None
        self._push_task = asyncio.get_running_loop().create_task(self._run_scheduled_push())

    async def _run_scheduled_push(self) -> None:
        if not self.session.dirty:
            # Already covered by an earlier push or replaced by a pull
            return
        result = await self.push()
        if result.skipped_reason == SKIP_BUSY:
            self.schedule_push()

    async def flush(self) -> Optional[SyncResult]:
        """Run a pending debounced push now and wait for it.

        Returns:
            Result of the push, or None if nothing was pending
        """
        result = None
        if self._push_timer is not None:
            self._push_timer.cancel()
            self._push_timer = None
            result = await self.push()
        if self._push_task is not None and not self._push_task.done():
            await self._push_task
        return result

    # ============================================================================
    # Push / pull
    # ============================================================================

    def _read_local_snapshot(self) -> Snapshot:
        return Snapshot(
            events=self.db.get_all_events(),
            notes=self.db.get_all_notes(),
            updated_at=next_timestamp(self.session.last_sync_timestamp),
        )

    async def push(self) -> SyncResult:
        """Send the whole local dataset to the remote snapshot.

        Skips silently when offline, logged out, already syncing, or while
        an imported snapshot waits for its forced pull. On failure the dirty
        flag stays set so a later trigger retries.
        """
        skip = self._skip_reason()
        if skip is None and self.session.force_pull:
            skip = SKIP_PULL_PENDING
        if skip:
            logger.debug(f"Push skipped: {skip}")
            return SyncResult(success=False, action="push", skipped_reason=skip)

        self.is_syncing = True
        self._set_status(SyncStatus.SYNCING)
        self.notifier.emit(ChangeEvent.SYNC_STARTED, action="push")
        remote_id = self.session.remote_id
        try:
            write_seq = self._write_seq
            snapshot = self._read_local_snapshot()
            try:
                await self.client.replace_snapshot(remote_id, snapshot)
            except RemoteNotFound:
                logger.warning(f"Remote snapshot {remote_id} missing; recreating it")
                await self.client.create_snapshot(snapshot, remote_id)
        except (SyncTransportError, RemoteNotFound, StorageError) as e:
            error_msg = f"Push failed: {e}"
            logger.error(error_msg)
            self._set_status(SyncStatus.ERROR, error_msg)
            self.notifier.emit(ChangeEvent.SYNC_ERROR, action="push", error=str(e))
            return SyncResult(success=False, action="push", errors=[error_msg])
        finally:
            self.is_syncing = False

        if self.session.remote_id != remote_id:
            logger.info("Session changed during push; discarding result")
            self._set_status(SyncStatus.IDLE)
            return SyncResult(success=True, action="push", updated_at=snapshot.updated_at)

        self.session.last_sync_timestamp = snapshot.updated_at
        if self._write_seq == write_seq:
            self.session.dirty = False
        else:
            # Writes landed while the request was in flight
            self.schedule_push()
        self._save_session()

        self._set_status(SyncStatus.IDLE)
        self.notifier.emit(ChangeEvent.SYNC_COMPLETE, action="push", updated_at=snapshot.updated_at)
        logger.info(
            f"Pushed {len(snapshot.events)} events and {len(snapshot.notes)} notes "
            f"to {remote_id} (updatedAt={snapshot.updated_at})"
        )
        return SyncResult(
            success=True,
            action="push",
            events=len(snapshot.events),
            notes=len(snapshot.notes),
            updated_at=snapshot.updated_at,
        )

    def _should_apply(self, snapshot: Snapshot) -> Optional[str]:
        """Decide whether a fetched snapshot replaces local data.

        Returns:
            None to apply, otherwise the reason for skipping
        """
        if self.session.force_pull:
            return None
        if self.session.dirty:
            return SKIP_DIRTY
        if snapshot.updated_at <= self.session.last_sync_timestamp:
            return SKIP_UP_TO_DATE
        return None

    def _apply_snapshot(self, snapshot: Snapshot) -> None:
        self.db.replace_all(snapshot.events, snapshot.notes)
        self.session.last_sync_timestamp = snapshot.updated_at
        self.session.dirty = False
        self.session.force_pull = False
        self._save_session()
        if self._push_timer is not None:
            self._push_timer.cancel()
            self._push_timer = None
        self.notifier.notify_pulled()
        logger.info(
            f"Pulled {len(snapshot.events)} events and {len(snapshot.notes)} notes "
            f"from {self.session.remote_id} (updatedAt={snapshot.updated_at})"
        )

    async def pull(self) -> SyncResult:
        """Fetch the remote snapshot and apply it if it should win.

        Skips silently when offline, logged out, or already syncing.
        """
        skip = self._skip_reason()
        if skip:
            logger.debug(f"Pull skipped: {skip}")
            return SyncResult(success=False, action="pull", skipped_reason=skip)

        self.is_syncing = True
        self._set_status(SyncStatus.SYNCING)
        self.notifier.emit(ChangeEvent.SYNC_STARTED, action="pull")
        remote_id = self.session.remote_id
        try:
            snapshot = await self.client.fetch_snapshot(remote_id)
            if self.session.remote_id != remote_id:
                logger.info("Session changed during pull; discarding result")
                self._set_status(SyncStatus.IDLE)
                return SyncResult(success=True, action="pull", skipped_reason=SKIP_LOGGED_OUT)

            reason = self._should_apply(snapshot)
            if reason is None:
                self._apply_snapshot(snapshot)
            elif reason == SKIP_DIRTY:
                logger.info("Local changes pending; skipping pull")
                self.schedule_push()
        except RemoteNotFound:
            logger.warning(f"Remote snapshot {remote_id} not found; nothing to pull")
            if self.session.dirty:
                self.schedule_push()
            self._set_status(SyncStatus.IDLE)
            self.notifier.emit(ChangeEvent.SYNC_COMPLETE, action="pull")
            return SyncResult(success=True, action="pull", skipped_reason=SKIP_REMOTE_MISSING)
        except (SyncTransportError, StorageError) as e:
            error_msg = f"Pull failed: {e}"
            logger.error(error_msg)
            self._set_status(SyncStatus.ERROR, error_msg)
            self.notifier.emit(ChangeEvent.SYNC_ERROR, action="pull", error=str(e))
            return SyncResult(success=False, action="pull", errors=[error_msg])
        finally:
            self.is_syncing = False

        self._set_status(SyncStatus.IDLE)
        self.notifier.emit(ChangeEvent.SYNC_COMPLETE, action="pull", updated_at=snapshot.updated_at)
        if reason is not None:
            return SyncResult(
                success=True, action="pull", skipped_reason=reason, updated_at=snapshot.updated_at
            )
        return SyncResult(
            success=True,
            action="pull",
            events=len(snapshot.events),
            notes=len(snapshot.notes),
            updated_at=snapshot.updated_at,
        )

    # ============================================================================
    # Polling
    # ============================================================================

    async def _poll_loop(self) -> None:
        while True:
            if self.session.authenticated and self.session.remote_id:
                try:
                    await self.pull()
                except Exception:
                    logger.exception("Unexpected error during scheduled pull")
            await asyncio.sleep(self.poll_interval)

    def start(self) -> None:
        """Start the background poll loop on the running event loop."""
        if self._poll_task is not None and not self._poll_task.done():
            return
        self._poll_task = asyncio.get_running_loop().create_task(self._poll_loop())
        logger.info(f"Polling remote every {self.poll_interval:g}s")

    async def stop(self) -> None:
        """Stop polling and drop any pending debounced push."""
        if self._push_timer is not None:
            self._push_timer.cancel()
            self._push_timer = None
        for task in (self._poll_task, self._push_task):
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._poll_task = None
        self._push_task = None

    # ============================================================================
    # Session bootstrap and token transfer
    # ============================================================================

    async def login(self, identity: str) -> SyncResult:
        """Bind this profile to the remote snapshot of a login identity.

        Pulls the snapshot if it exists (under the usual pull rules),
        otherwise creates it empty.

        Raises:
            ValidationError: If the identity is empty
            SyncTransportError: If the remote cannot be reached
        """
        remote_id = derive_remote_id(identity)
        self.is_syncing = True
        try:
            try:
                snapshot: Optional[Snapshot] = await self.client.fetch_snapshot(remote_id)
            except RemoteNotFound:
                snapshot = Snapshot(updated_at=next_timestamp(0))
                await self.client.create_snapshot(snapshot, remote_id)
                created = True
            else:
                created = False

            if self.session.remote_id != remote_id:
                self.session.last_sync_timestamp = 0
                self.session.force_pull = False
            self.session.remote_id = remote_id
            self.session.authenticated = True

            if created:
                self.session.last_sync_timestamp = snapshot.updated_at
                self._save_session()
                logger.info(f"Logged in; created remote snapshot {remote_id}")
                if self.session.dirty:
                    self.schedule_push()
                return SyncResult(success=True, action="create", updated_at=snapshot.updated_at)

            reason = self._should_apply(snapshot)
            if reason is None:
                self._apply_snapshot(snapshot)
            else:
                self._save_session()
                if reason == SKIP_DIRTY:
                    self.schedule_push()
            logger.info(f"Logged in to remote snapshot {remote_id}")
            return SyncResult(
                success=True,
                action="pull",
                skipped_reason=reason,
                events=len(snapshot.events) if reason is None else 0,
                notes=len(snapshot.notes) if reason is None else 0,
                updated_at=snapshot.updated_at,
            )
        finally:
            self.is_syncing = False

    def logout(self) -> None:
        """Forget the remote binding. The remote snapshot is left untouched."""
        if self._push_timer is not None:
            self._push_timer.cancel()
            self._push_timer = None
        self.session.remote_id = None
        self.session.last_sync_timestamp = 0
        self.session.force_pull = False
        self.session.authenticated = False
        self.config.clear_session()
        self._set_status(SyncStatus.IDLE)
        logger.info("Logged out")

    def export_token(self) -> str:
        """Get the sync token to copy to another device.

        Raises:
            InvalidToken: If this profile is not bound to a remote snapshot
        """
        if not self.session.remote_id:
            raise InvalidToken("Not logged in: there is no sync token to export")
        return self.session.remote_id

    async def import_token(self, token: str) -> str:
        """Adopt a sync token copied from another device.

        The token must resolve to an existing remote snapshot. The next pull
        applies that snapshot even if local writes are pending.

        Returns:
            The normalized remote id

        Raises:
            InvalidToken: If the token is malformed, unknown, or cannot be
                verified
        """
        remote_id = normalize_token(token)
        try:
            await self.client.fetch_snapshot(remote_id)
        except RemoteNotFound:
            raise InvalidToken(f"No synced data found for token '{remote_id}'") from None
        except SyncTransportError as e:
            raise InvalidToken(f"Could not verify sync token: {e}") from e

        if self._push_timer is not None:
            self._push_timer.cancel()
            self._push_timer = None
        self.session.remote_id = remote_id
        self.session.last_sync_timestamp = 0
        self.session.force_pull = True
        self.session.authenticated = True
        self._save_session()
        logger.info(f"Imported sync token {remote_id}; next pull will overwrite local data")
        return remote_id
