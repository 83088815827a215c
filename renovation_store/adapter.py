"""
Dual-store collection adapter.

Presents one async collection API over the transactional local database,
falling back to the flat JSON store when the database cannot be opened.

Routing is decided once per adapter instance:

    PROBING ──open ok──▶ AVAILABLE    (every call goes to the database)
       │
       └──open fails──▶ UNAVAILABLE  (every call goes to the flat store)

There is no transition out of AVAILABLE or UNAVAILABLE; a failure during a
later operation is that operation's error, not a state change. A new
adapter instance probes again. A collection missing from the database
schema is an error raised by every operation, not a reason to fall back.

Mirror policy:
    With ``mirror_writes`` enabled, each successful database write is
    followed by a copy of the whole collection into the flat store. The
    copy is best-effort: a failure is logged and the write still succeeds.
    While the database is available the flat store is never read by the
    collection operations.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

from .collection import CollectionStore, Record
from .database import LocalDatabase
from .exceptions import LocalStoreError, ProbeError, StorageIOError, StoreNotFoundError, SyncError
from .flat_store import FlatCollection, FlatStore
from .logging_utils import ComponentLogger

logger = logging.getLogger(__name__)


class ProbeState(Enum):
    """Routing state of a DualStoreAdapter."""

    PROBING = "probing"
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class DualStoreAdapter:
    """Collection operations routed to the database or the flat store.

    Args:
        database: Owned database handle (opened by the probe if needed)
        store_name: Collection name in the database schema
        local_storage_key: Key of the collection in the flat store
        flat_store: Flat store used for the fallback path and mirroring
        mirror_writes: Copy the collection to the flat store after database writes
        id_field: Record field holding the identifier
    """

    def __init__(
        self,
        database: LocalDatabase,
        store_name: str,
        local_storage_key: str,
        flat_store: FlatStore,
        mirror_writes: bool = False,
        id_field: str = "id",
    ) -> None:
        self.database = database
        self.store_name = store_name
        self.local_storage_key = local_storage_key
        self.flat_store = flat_store
        self.mirror_writes = mirror_writes
        self.id_field = id_field

        self._state = ProbeState.PROBING
        self._error: Exception | None = None
        self._probe_lock = asyncio.Lock()
        self._primary: CollectionStore | None = None
        self._fallback = FlatCollection(flat_store, local_storage_key, id_field)
        self._log = ComponentLogger(logger, f"DualStoreAdapter[{store_name}]", "storage")

    @property
    def state(self) -> ProbeState:
        return self._state

    @property
    def is_db_available(self) -> bool:
        return self._state is ProbeState.AVAILABLE

    @property
    def is_loading(self) -> bool:
        return self._state is ProbeState.PROBING

    @property
    def error(self) -> Exception | None:
        """Error recorded by the probe, if any."""
        return self._error

    async def initialize(self) -> ProbeState:
        """Probe the database once and fix the routing for this instance.

        Probe failures are recorded in ``error``, never raised.

        Raises:
            StoreNotFoundError: If ``store_name`` is not declared by the database
        """
        async with self._probe_lock:
            if self._state is not ProbeState.PROBING:
                return self._state

            try:
                primary = self.database.open_collection(self.store_name, self.id_field)
            except StoreNotFoundError:
                self._log.error(f"Collection {self.store_name} is not part of the database schema")
                raise

            try:
                await self.database.open()
                self._primary = primary
                self._state = ProbeState.AVAILABLE
                self._log.info(f"Local database available for {self.store_name}")
            except ProbeError as e:
                self._error = e
                self._state = ProbeState.UNAVAILABLE
                self._log.warning(
                    f"Local database unavailable for {self.store_name}, "
                    f"falling back to flat store key {self.local_storage_key}: {e}"
                )
            return self._state

    async def _route(self) -> CollectionStore:
        if self._state is ProbeState.PROBING:
            await self.initialize()
        if self._state is ProbeState.AVAILABLE and self._primary is not None:
            return self._primary
        return self._fallback

    def _where(self, store: CollectionStore) -> str:
        if store is self._fallback:
            return f"flat store ({self.local_storage_key})"
        return f"local database ({self.store_name})"

    def _failure(self, operation: str, store: CollectionStore, err: Exception) -> LocalStoreError:
        self._log.error(f"Error during {operation} on {self._where(store)}: {err}", exc_info=err)
        if isinstance(err, LocalStoreError):
            return err
        return StorageIOError(operation, self._where(store), err)

    async def _mirror(self, store: CollectionStore) -> None:
        if not self.mirror_writes or store is self._fallback:
            return
        try:
            await self.flat_store.write_list(self.local_storage_key, await store.get_all())
        except Exception as e:
            self._log.warning(f"Mirror write to flat store key {self.local_storage_key} failed: {e}")

    async def get_all_items(self) -> list[Record]:
        """Read every record of the collection."""
        store = await self._route()
        try:
            return await store.get_all()
        except Exception as e:
            raise self._failure("get_all_items", store, e) from e

    async def get_item(self, item_id: str) -> Record | None:
        """Look up one record; None when it does not exist."""
        store = await self._route()
        try:
            return await store.get(item_id)
        except Exception as e:
            raise self._failure("get_item", store, e) from e

    async def add_item(self, item: Record) -> str:
        """Insert a record and return its id."""
        store = await self._route()
        try:
            item_id = await store.add(item)
        except Exception as e:
            raise self._failure("add_item", store, e) from e
        await self._mirror(store)
        return item_id

    async def update_item(self, item_id: str, item: Record) -> None:
        """Replace the record stored under ``item_id``.

        Raises:
            ItemNotFoundError: If no record has this id
        """
        store = await self._route()
        try:
            await store.update(item_id, item)
        except Exception as e:
            raise self._failure("update_item", store, e) from e
        await self._mirror(store)

    async def delete_item(self, item_id: str) -> None:
        """Remove a record by id."""
        store = await self._route()
        try:
            await store.delete(item_id)
        except Exception as e:
            raise self._failure("delete_item", store, e) from e
        await self._mirror(store)

    async def clear_items(self) -> None:
        """Remove every record of the collection."""
        store = await self._route()
        try:
            await store.clear()
        except Exception as e:
            raise self._failure("clear_items", store, e) from e
        self._log.info(f"Cleared {self._where(store)}")
        await self._mirror(store)

    async def sync_from_local_storage(self, items: list[Record]) -> None:
        """Make the database collection match ``items`` exactly.

        No-op when the database is unavailable. Otherwise every item is
        upserted and every stored record absent from ``items`` is deleted,
        in one transaction.
        """
        store = await self._route()
        if store is self._fallback:
            return

        try:
            result = await store.replace_all(items)
        except Exception as e:
            self._log.error(f"Synchronization into {self._where(store)} failed: {e}", exc_info=e)
            raise SyncError(self.store_name, e) from e

        self._log.info(
            f"Synchronized {len(items)} items from flat store into {self.store_name} "
            f"(added={result.added}, updated={result.updated}, deleted={result.deleted})"
        )
        await self._mirror(store)

    async def load_local_snapshot(self) -> list[Record]:
        """Read the flat-store array for this collection, whatever the routing."""
        return await self.flat_store.read_list(self.local_storage_key)
