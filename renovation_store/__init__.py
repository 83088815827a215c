"""
Renovation Local Store

Offline storage for the renovation quote application: rooms, work items,
building-site projects, clients and the property description.

Provides:
- A transactional local database (SQLite) with a flat JSON store fallback
- One async collection API over both (DualStoreAdapter)
- One-time migration of flat-store snapshots into the database
- Entity repositories with user-facing notifications
- A persisted log journal and storage inspection tools

Usage:

    >>> from renovation_store import RenovationStore, StoreConfig
    >>> async with RenovationStore(StoreConfig(data_dir="~/.renovation")) as store:
    ...     await store.rooms.save({"id": "r1", "name": "Salon"})
    ...     travaux = await store.travaux.get_travaux_for_piece("r1")

Lower level:

    >>> from renovation_store import DualStoreAdapter, FlatStore, LocalDatabase
    >>> async with LocalDatabase("app.db", stores=("rooms",)) as db:
    ...     rooms = DualStoreAdapter(db, "rooms", "roomsStorage", FlatStore("local_storage"))
    ...     await rooms.add_item({"id": "r1", "name": "Salon"})
"""

from .adapter import DualStoreAdapter, ProbeState
from .collection import CollectionStore, ReplaceResult
from .config import StoreConfig
from .database import LocalDatabase, SQLiteCollection
from .exceptions import (
    ItemExistsError,
    ItemNotFoundError,
    LocalStoreError,
    ProbeError,
    StorageIOError,
    StoreNotFoundError,
    SyncError,
    ValidationError,
)
from .flat_store import FlatCollection, FlatStore
from .journal import JournalHandler, LogEntry, LogJournal
from .notifications import Notification, NotificationLevel, Notifier
from .repositories import (
    ClientsRepository,
    EntityRepository,
    ProjetsRepository,
    PropertyRepository,
    RoomsRepository,
    TravauxRepository,
)
from .store import RenovationStore

__all__ = [
    # Facade
    "RenovationStore",
    "StoreConfig",
    # Storage
    "CollectionStore",
    "ReplaceResult",
    "LocalDatabase",
    "SQLiteCollection",
    "FlatStore",
    "FlatCollection",
    "DualStoreAdapter",
    "ProbeState",
    # Repositories
    "EntityRepository",
    "RoomsRepository",
    "TravauxRepository",
    "ProjetsRepository",
    "ClientsRepository",
    "PropertyRepository",
    # Notifications and journal
    "Notification",
    "NotificationLevel",
    "Notifier",
    "LogEntry",
    "LogJournal",
    "JournalHandler",
    # Exceptions
    "LocalStoreError",
    "ProbeError",
    "ItemNotFoundError",
    "ItemExistsError",
    "StoreNotFoundError",
    "StorageIOError",
    "SyncError",
    "ValidationError",
]

__version__ = "0.1.0"
