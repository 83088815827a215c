"""
Tests for the dual-store adapter.

Every behavioural test runs against both routings: the available in-memory
database and the fallback flat store (database probe fails).
"""

import json
import logging
from pathlib import Path

import pytest

from renovation_store.adapter import DualStoreAdapter, ProbeState
from renovation_store.database import LocalDatabase
from renovation_store.exceptions import (
    ItemNotFoundError,
    ProbeError,
    StorageIOError,
    StoreNotFoundError,
    SyncError,
)
from renovation_store.flat_store import FlatStore


@pytest.fixture(params=["database", "flat_store"])
async def rooms(request, database, unavailable_database, flat_store) -> DualStoreAdapter:
    """Rooms adapter on either routing."""
    db = database if request.param == "database" else unavailable_database
    adapter = DualStoreAdapter(db, "rooms", "roomsStorage", flat_store)
    await adapter.initialize()
    return adapter


class TestProbe:
    """Tests for the probe state machine."""

    @pytest.mark.asyncio
    async def test_available_database(self, database: LocalDatabase, flat_store: FlatStore) -> None:
        adapter = DualStoreAdapter(database, "rooms", "roomsStorage", flat_store)
        assert adapter.state is ProbeState.PROBING
        assert adapter.is_loading

        state = await adapter.initialize()

        assert state is ProbeState.AVAILABLE
        assert adapter.is_db_available
        assert not adapter.is_loading
        assert adapter.error is None

    @pytest.mark.asyncio
    async def test_unavailable_database(
        self, unavailable_database: LocalDatabase, flat_store: FlatStore
    ) -> None:
        adapter = DualStoreAdapter(unavailable_database, "rooms", "roomsStorage", flat_store)

        state = await adapter.initialize()

        assert state is ProbeState.UNAVAILABLE
        assert not adapter.is_db_available
        assert isinstance(adapter.error, ProbeError)

    @pytest.mark.asyncio
    async def test_operations_await_the_probe(self, database: LocalDatabase, flat_store: FlatStore) -> None:
        adapter = DualStoreAdapter(database, "rooms", "roomsStorage", flat_store)

        assert await adapter.get_all_items() == []
        assert adapter.state is ProbeState.AVAILABLE

    @pytest.mark.asyncio
    async def test_routing_never_changes(
        self, unavailable_database: LocalDatabase, flat_store: FlatStore, tmp_path: Path
    ) -> None:
        adapter = DualStoreAdapter(unavailable_database, "rooms", "roomsStorage", flat_store)
        await adapter.initialize()

        # Make the path openable; the instance keeps its routing anyway
        unavailable_database.db_path = tmp_path / "now-valid.db"
        await adapter.initialize()
        await adapter.add_item({"id": "r1"})

        assert adapter.state is ProbeState.UNAVAILABLE
        assert await flat_store.read_list("roomsStorage") == [{"id": "r1"}]
        assert not unavailable_database.is_open


class TestCollectionOperations:
    """Tests run against both routings."""

    @pytest.mark.asyncio
    async def test_add_then_get(self, rooms: DualStoreAdapter) -> None:
        item = {"id": "r1", "name": "Salon", "surface": 24.5, "murs": [{"h": 2.5}]}

        assert await rooms.add_item(item) == "r1"
        assert await rooms.get_item("r1") == item
        assert await rooms.get_all_items() == [item]

    @pytest.mark.asyncio
    async def test_get_missing_is_none(self, rooms: DualStoreAdapter) -> None:
        assert await rooms.get_item("nope") is None

    @pytest.mark.asyncio
    async def test_update_is_idempotent(self, rooms: DualStoreAdapter) -> None:
        await rooms.add_item({"id": "r1", "name": "Salon"})
        updated = {"id": "r1", "name": "Salon A"}

        await rooms.update_item("r1", updated)
        once = await rooms.get_all_items()
        await rooms.update_item("r1", updated)

        assert await rooms.get_all_items() == once == [updated]

    @pytest.mark.asyncio
    async def test_update_missing_raises(self, rooms: DualStoreAdapter) -> None:
        with pytest.raises(ItemNotFoundError):
            await rooms.update_item("r1", {"id": "r1", "name": "Salon"})

    @pytest.mark.asyncio
    async def test_update_missing_with_existing_collection_raises(self, rooms: DualStoreAdapter) -> None:
        await rooms.add_item({"id": "r1"})

        with pytest.raises(ItemNotFoundError):
            await rooms.update_item("r2", {"id": "r2"})

    @pytest.mark.asyncio
    async def test_delete_removes_only_that_item(self, rooms: DualStoreAdapter) -> None:
        await rooms.add_item({"id": "r1"})
        await rooms.add_item({"id": "r2"})

        await rooms.delete_item("r1")

        assert await rooms.get_item("r1") is None
        assert await rooms.get_all_items() == [{"id": "r2"}]

    @pytest.mark.asyncio
    async def test_clear(self, rooms: DualStoreAdapter) -> None:
        await rooms.add_item({"id": "r1"})
        await rooms.add_item({"id": "r2"})

        await rooms.clear_items()

        assert await rooms.get_all_items() == []

    @pytest.mark.asyncio
    async def test_rooms_scenario(self, rooms: DualStoreAdapter) -> None:
        await rooms.add_item({"id": "r1", "name": "Salon"})
        await rooms.update_item("r1", {"id": "r1", "name": "Salon A"})

        assert await rooms.get_all_items() == [{"id": "r1", "name": "Salon A"}]

        await rooms.delete_item("r1")
        assert await rooms.get_all_items() == []


class TestDatabaseRouting:
    """Tests specific to the database path."""

    @pytest.mark.asyncio
    async def test_flat_store_untouched_without_mirror(
        self, database: LocalDatabase, flat_store: FlatStore
    ) -> None:
        adapter = DualStoreAdapter(database, "rooms", "roomsStorage", flat_store)

        await adapter.add_item({"id": "r1"})

        assert await flat_store.get_item("roomsStorage") is None

    @pytest.mark.asyncio
    async def test_flat_store_not_read_while_available(
        self, database: LocalDatabase, flat_store: FlatStore
    ) -> None:
        await flat_store.write_list("roomsStorage", [{"id": "stale"}])
        adapter = DualStoreAdapter(database, "rooms", "roomsStorage", flat_store)

        assert await adapter.get_all_items() == []
        assert await adapter.load_local_snapshot() == [{"id": "stale"}]

    @pytest.mark.asyncio
    async def test_mirror_writes(self, database: LocalDatabase, flat_store: FlatStore) -> None:
        adapter = DualStoreAdapter(database, "rooms", "roomsStorage", flat_store, mirror_writes=True)

        await adapter.add_item({"id": "r1", "name": "Salon"})
        await adapter.add_item({"id": "r2", "name": "Cuisine"})
        await adapter.delete_item("r1")

        raw = await flat_store.get_item("roomsStorage")
        assert json.loads(raw) == [{"id": "r2", "name": "Cuisine"}]

    @pytest.mark.asyncio
    async def test_mirror_failure_is_not_fatal(
        self, database: LocalDatabase, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        adapter = DualStoreAdapter(
            database, "rooms", "roomsStorage", FlatStore(blocker), mirror_writes=True
        )

        with caplog.at_level(logging.WARNING, logger="renovation_store.adapter"):
            await adapter.add_item({"id": "r1"})

        assert await adapter.get_item("r1") == {"id": "r1"}
        assert "Mirror write" in caplog.text

    @pytest.mark.asyncio
    async def test_sync_from_local_storage(self, database: LocalDatabase, flat_store: FlatStore) -> None:
        adapter = DualStoreAdapter(database, "rooms", "roomsStorage", flat_store)
        for item in ({"id": "A"}, {"id": "B", "v": 1}, {"id": "C"}):
            await adapter.add_item(item)

        await adapter.sync_from_local_storage([{"id": "B", "v": 2}, {"id": "D"}])

        items = sorted(await adapter.get_all_items(), key=lambda r: r["id"])
        assert items == [{"id": "B", "v": 2}, {"id": "D"}]

    @pytest.mark.asyncio
    async def test_sync_empty_list_empties_collection(
        self, database: LocalDatabase, flat_store: FlatStore
    ) -> None:
        adapter = DualStoreAdapter(database, "rooms", "roomsStorage", flat_store)
        await adapter.add_item({"id": "A"})

        await adapter.sync_from_local_storage([])

        assert await adapter.get_all_items() == []

    @pytest.mark.asyncio
    async def test_sync_failure_raises_and_rolls_back(
        self, database: LocalDatabase, flat_store: FlatStore
    ) -> None:
        adapter = DualStoreAdapter(database, "rooms", "roomsStorage", flat_store)
        await adapter.add_item({"id": "A"})

        with pytest.raises(SyncError):
            await adapter.sync_from_local_storage([{"id": "B"}, {"label": "missing id"}])

        assert await adapter.get_all_items() == [{"id": "A"}]

    @pytest.mark.asyncio
    async def test_closed_database_error_is_wrapped(
        self, database: LocalDatabase, flat_store: FlatStore
    ) -> None:
        adapter = DualStoreAdapter(database, "rooms", "roomsStorage", flat_store)
        await adapter.initialize()
        await database.close()

        with pytest.raises(StorageIOError):
            await adapter.get_all_items()
        assert adapter.state is ProbeState.AVAILABLE


class TestFallbackRouting:
    """Tests specific to the flat-store path."""

    @pytest.mark.asyncio
    async def test_writes_land_in_flat_store(
        self, unavailable_database: LocalDatabase, flat_store: FlatStore
    ) -> None:
        adapter = DualStoreAdapter(unavailable_database, "rooms", "roomsStorage", flat_store)

        await adapter.add_item({"id": "r1", "name": "Salon"})

        assert json.loads(await flat_store.get_item("roomsStorage")) == [{"id": "r1", "name": "Salon"}]

    @pytest.mark.asyncio
    async def test_clear_removes_key(self, unavailable_database: LocalDatabase, flat_store: FlatStore) -> None:
        adapter = DualStoreAdapter(unavailable_database, "rooms", "roomsStorage", flat_store)
        await adapter.add_item({"id": "r1"})

        await adapter.clear_items()

        assert await flat_store.get_item("roomsStorage") is None

    @pytest.mark.asyncio
    async def test_sync_is_noop(self, unavailable_database: LocalDatabase, flat_store: FlatStore) -> None:
        adapter = DualStoreAdapter(unavailable_database, "rooms", "roomsStorage", flat_store)
        await adapter.add_item({"id": "A"})

        await adapter.sync_from_local_storage([{"id": "Z"}])

        assert await adapter.get_all_items() == [{"id": "A"}]

    @pytest.mark.asyncio
    async def test_corrupt_snapshot_is_an_error(
        self, unavailable_database: LocalDatabase, flat_store: FlatStore
    ) -> None:
        await flat_store.set_item("roomsStorage", "{broken")
        adapter = DualStoreAdapter(unavailable_database, "rooms", "roomsStorage", flat_store)

        with pytest.raises(StorageIOError):
            await adapter.get_all_items()


class TestUndeclaredStore:
    """A collection missing from the schema is an error, not a fallback."""

    @pytest.mark.asyncio
    async def test_operations_raise_and_flat_store_is_untouched(
        self, database: LocalDatabase, flat_store: FlatStore
    ) -> None:
        adapter = DualStoreAdapter(database, "romos", "rooms", flat_store)

        with pytest.raises(StoreNotFoundError):
            await adapter.add_item({"id": "x"})
        with pytest.raises(StoreNotFoundError):
            await adapter.get_all_items()

        assert adapter.state is ProbeState.PROBING
        assert adapter.error is None
        assert await flat_store.get_item("rooms") is None

    @pytest.mark.asyncio
    async def test_initialize_raises(self, database: LocalDatabase, flat_store: FlatStore) -> None:
        adapter = DualStoreAdapter(database, "romos", "rooms", flat_store)

        with pytest.raises(StoreNotFoundError):
            await adapter.initialize()
