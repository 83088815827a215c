"""
Shared test configuration and fixtures.

Uses real SQLite (in-memory or temp file) and a flat store in a temporary
directory. An unavailable database is simulated by pointing the database
path at a directory, which SQLite cannot open.
"""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from renovation_store.database import LocalDatabase
from renovation_store.flat_store import FlatStore
from renovation_store.notifications import Notification, Notifier

ROOM_STORES = ("rooms", "travaux", "projets", "clients", "property")


@pytest.fixture
def flat_store(tmp_path: Path) -> FlatStore:
    """Flat store in a temporary directory."""
    return FlatStore(tmp_path / "local_storage")


@pytest.fixture
async def database() -> AsyncIterator[LocalDatabase]:
    """Opened in-memory database declaring the application stores."""
    db = LocalDatabase(":memory:", stores=ROOM_STORES)
    await db.open()
    yield db
    await db.close()


@pytest.fixture
async def unavailable_database(tmp_path: Path) -> AsyncIterator[LocalDatabase]:
    """Database whose probe always fails."""
    blocked = tmp_path / "not-a-database"
    blocked.mkdir()
    db = LocalDatabase(blocked, stores=ROOM_STORES)
    yield db
    await db.close()


class RecordingNotifier(Notifier):
    """Notifier that keeps every notification for assertions."""

    def __init__(self) -> None:
        super().__init__()
        self.received: list[Notification] = []
        self.subscribe(self.received.append)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
