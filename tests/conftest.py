"""Pytest fixtures for DayMark tests.

This module provides fixtures for test configuration, databases with
sample data, and in-process snapshot servers.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from typing import Callable, Generator, List

import pytest
from flask import Flask

from daymark.core.config import Config
from daymark.core.database import Database
from daymark.core.journal import Journal, open_journal
from daymark.core.models import Event
from daymark.core.snapshot_store import SnapshotStore
from daymark.core.sync_client import SyncClient
from daymark.web import create_app

from helpers import SAMPLE_EVENTS, SAMPLE_NOTES, TEST_SERVER_URL, flask_transport


@pytest.fixture
def test_config_dir(tmp_path: Path) -> Path:
    """Create temporary config directory for tests.

    Args:
        tmp_path: pytest temporary directory fixture

    Returns:
        Path to temporary config directory.
    """
    config_dir = tmp_path / "daymark_test"
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


@pytest.fixture
def test_config(test_config_dir: Path) -> Config:
    """Create test configuration.

    Args:
        test_config_dir: Temporary config directory

    Returns:
        Config instance for testing.
    """
    return Config(config_dir=test_config_dir)


@pytest.fixture
def test_db_path(test_config: Config) -> Path:
    """Get path of the test profile's database."""
    return test_config.get_database_file()


@pytest.fixture
def empty_db(test_db_path: Path) -> Generator[Database, None, None]:
    """Create empty test database.

    Yields:
        Empty Database instance.
    """
    db = Database(test_db_path)
    yield db
    db.close()


@pytest.fixture
def populated_db(test_db_path: Path) -> Generator[Database, None, None]:
    """Create test database with sample data.

    Events:
        e1  2025-01-15 12:00-13:00  Lunch
        e2  2025-01-15 09:00        Standup (important)
        e3  2025-01-16              Dentist
        e4  2025-02-01              Birthday (important, color, icon)

    Notes:
        2025-01-15  "Busy day."
        2025-01-16  "" (empty, does not count as a note)
        2025-02-01  "Cake!"

    Yields:
        Populated Database instance.
    """
    db = Database(test_db_path)
    for event in SAMPLE_EVENTS:
        db.save_event(event)
    for date, content in SAMPLE_NOTES:
        db.save_daily_note(date, content)
    yield db
    db.close()


@pytest.fixture
def sample_events() -> List[Event]:
    return list(SAMPLE_EVENTS)


@pytest.fixture
def snapshot_store(tmp_path: Path) -> Generator[SnapshotStore, None, None]:
    """Server-side snapshot store in a temporary file."""
    store = SnapshotStore(tmp_path / "server" / "snapshots.db")
    yield store
    store.close()


@pytest.fixture
def server_app(snapshot_store: SnapshotStore) -> Flask:
    """Snapshot server application backed by snapshot_store."""
    app = create_app(store=snapshot_store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def make_device(
    tmp_path: Path, server_app: Flask
) -> Generator[Callable[[str], Journal], None, None]:
    """Factory for independent device profiles talking to server_app.

    Each device gets its own config directory, database and broadcast
    channel. Push debounce and polling are shortened for tests.
    """
    journals: List[Journal] = []

    def factory(name: str) -> Journal:
        config = Config(config_dir=tmp_path / "devices" / name)
        config.update({"push_delay_seconds": 0.01, "poll_interval_seconds": 0.05})
        client = SyncClient(TEST_SERVER_URL, transport=flask_transport(server_app))
        journal = open_journal(config, client=client, channel_name=f"test-{name}-{uuid.uuid4().hex}")
        journals.append(journal)
        return journal

    yield factory

    for journal in journals:
        journal.notifier.close()
        journal.db.close()
