"""
Entity repositories.

Each repository wraps one DualStoreAdapter and adds what the application
screens need on top of the raw collection operations:

- a one-time migration of the legacy flat-store snapshot into the database
- insert-or-update ``save`` semantics
- client-side filters (``get_travaux_for_piece``, ``get_projets_for_client``)
- user-facing notifications naming the operation and the entity

Every operation that fails notifies the user and re-raises, so the
calling screen can react as well.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .adapter import DualStoreAdapter
from .collection import Record
from .database import LocalDatabase
from .exceptions import LocalStoreError, StorageIOError, ValidationError
from .flat_store import FlatStore
from .logging_utils import ComponentLogger
from .notifications import Notifier

logger = logging.getLogger(__name__)

MIGRATED_SUFFIX = "__migrated"


class EntityRepository:
    """Domain-named operations over one dual-store collection."""

    store_name: str = ""
    local_storage_key: str = ""
    entity_label: str = "item"
    id_field: str = "id"

    def __init__(
        self,
        database: LocalDatabase,
        flat_store: FlatStore,
        notifier: Notifier | None = None,
        mirror_writes: bool = False,
    ) -> None:
        self.flat_store = flat_store
        self.notifier = notifier or Notifier()
        self.adapter = DualStoreAdapter(
            database,
            self.store_name,
            self.local_storage_key,
            flat_store,
            mirror_writes=mirror_writes,
            id_field=self.id_field,
        )
        self._initialized = False
        self._log = ComponentLogger(logger, type(self).__name__, "storage")

    @property
    def is_db_available(self) -> bool:
        return self.adapter.is_db_available

    @property
    def is_loading(self) -> bool:
        return self.adapter.is_loading

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def error(self) -> Exception | None:
        return self.adapter.error

    async def initialize(self) -> bool:
        """Probe the database and migrate the legacy snapshot once.

        The snapshot is synchronized only when the database is available
        and the snapshot is non-empty. Errors are logged and leave the
        repository uninitialized so a later call can retry.

        Returns:
            True once the repository is initialized
        """
        if self._initialized:
            return True

        await self.adapter.initialize()
        if not self.adapter.is_db_available:
            return False

        try:
            raw = await self.flat_store.get_item(self.local_storage_key)
            snapshot = self._parse_snapshot(raw)
            if snapshot:
                await self.adapter.sync_from_local_storage(snapshot)
                self._log.info(
                    f"{len(snapshot)} {self.entity_label} records synchronized "
                    f"from flat store into the local database"
                )
                if not self.adapter.mirror_writes:
                    await self._archive_snapshot(raw)
            else:
                self._log.info(f"No {self.entity_label} snapshot to synchronize")
            self._initialized = True
        except LocalStoreError as e:
            self._log.error(f"Initial synchronization of {self.entity_label} records failed: {e}")

        return self._initialized

    def _parse_snapshot(self, raw: str | None) -> list[Record]:
        if raw is None or not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageIOError("parse_json", self.local_storage_key, e) from e
        return self.extract_snapshot(data)

    def extract_snapshot(self, data: Any) -> list[Record]:
        """Turn the decoded legacy value into a list of records."""
        if isinstance(data, list):
            return data
        return []

    async def _archive_snapshot(self, raw: str | None) -> None:
        # A migrated snapshot is moved aside and never synchronized twice
        if raw is None:
            return
        await self.flat_store.set_item(self.local_storage_key + MIGRATED_SUFFIX, raw)
        await self.flat_store.remove_item(self.local_storage_key)

    async def _guard(self, operation: str, awaitable: Any) -> Any:
        try:
            return await awaitable
        except LocalStoreError as e:
            self._log.error(f"Error during {operation} of {self.entity_label}: {e}")
            self.notifier.error(
                f"Could not {operation} {self.entity_label}",
                e.message,
                operation=operation,
                entity=self.entity_label,
            )
            raise

    def _require_id(self, entity: Record) -> str:
        item_id = entity.get(self.id_field)
        if not item_id:
            err = ValidationError(self.id_field, f"cannot save a {self.entity_label} without an id")
            self.notifier.error(
                f"Could not save {self.entity_label}",
                err.message,
                operation="save",
                entity=self.entity_label,
            )
            raise err
        return item_id

    async def get_all(self) -> list[Record]:
        return await self._guard("load", self.adapter.get_all_items())

    async def get(self, item_id: str) -> Record | None:
        return await self._guard("load", self.adapter.get_item(item_id))

    async def save(self, entity: Record) -> bool:
        """Insert the entity, or update it when its id is already stored.

        Returns:
            True when the entity was inserted
        """
        item_id = self._require_id(entity)

        async def _save() -> bool:
            if await self.adapter.get_item(item_id) is not None:
                await self.adapter.update_item(item_id, entity)
                return False
            await self.adapter.add_item(entity)
            return True

        created = await self._guard("save", _save())
        self._log.debug(f"{self.entity_label} {'added' if created else 'updated'}: {item_id}")
        self.notifier.success(
            f"{self.entity_label.capitalize()} {'added' if created else 'updated'}",
            operation="save",
            entity=self.entity_label,
        )
        return created

    async def delete(self, item_id: str) -> None:
        await self._guard("delete", self.adapter.delete_item(item_id))
        self.notifier.success(
            f"{self.entity_label.capitalize()} deleted", operation="delete", entity=self.entity_label
        )

    async def clear(self) -> None:
        await self._guard("clear", self.adapter.clear_items())
        self.notifier.success(
            f"All {self.entity_label} records removed", operation="clear", entity=self.entity_label
        )

    async def filter_by(self, field: str, value: Any) -> list[Record]:
        """Records whose ``field`` equals ``value`` (filtered client-side)."""
        records = await self._guard("load", self.adapter.get_all_items())
        return [record for record in records if record.get(field) == value]


class RoomsRepository(EntityRepository):
    store_name = "rooms"
    local_storage_key = "rooms"
    entity_label = "room"


class TravauxRepository(EntityRepository):
    store_name = "travaux"
    local_storage_key = "travaux"
    entity_label = "work item"

    async def get_travaux_for_piece(self, piece_id: str) -> list[Record]:
        """Work items attached to one room."""
        return await self.filter_by("pieceId", piece_id)


class ProjetsRepository(EntityRepository):
    store_name = "projets"
    local_storage_key = "projetsChantier"
    entity_label = "project"

    def extract_snapshot(self, data: Any) -> list[Record]:
        # Older snapshots hold the whole context state: {"projets": [...]}
        if isinstance(data, dict):
            projets = data.get("projets")
            return projets if isinstance(projets, list) else []
        return super().extract_snapshot(data)

    async def get_projets_for_client(self, client_id: str) -> list[Record]:
        """Projects belonging to one client."""
        return await self.filter_by("clientId", client_id)

    async def reset_projets(self) -> None:
        await self.clear()


class ClientsRepository(EntityRepository):
    store_name = "clients"
    local_storage_key = "clients"
    entity_label = "client"

    async def reset_clients(self, default_clients: list[Record]) -> None:
        """Replace every client with ``default_clients``."""

        async def _reset() -> None:
            await self.adapter.clear_items()
            for client in default_clients:
                await self.adapter.add_item(client)

        await self._guard("reset", _reset())
        self._log.warning(f"Clients reset to {len(default_clients)} defaults")
        self.notifier.success("Clients reset", operation="reset", entity=self.entity_label)


class PropertyRepository(EntityRepository):
    """The single property description of the current project."""

    store_name = "property"
    local_storage_key = "property"
    entity_label = "property"

    RECORD_ID = "current"

    def __init__(
        self,
        database: LocalDatabase,
        flat_store: FlatStore,
        notifier: Notifier | None = None,
        mirror_writes: bool = True,
    ) -> None:
        super().__init__(database, flat_store, notifier, mirror_writes=mirror_writes)

    def extract_snapshot(self, data: Any) -> list[Record]:
        # Legacy value is the bare property object
        if isinstance(data, dict):
            return [{**data, self.id_field: self.RECORD_ID}]
        return super().extract_snapshot(data)

    async def get_property(self) -> dict[str, Any] | None:
        record = await self.get(self.RECORD_ID)
        if record is None:
            return None
        return {key: value for key, value in record.items() if key != self.id_field}

    async def save_property(self, property_info: dict[str, Any]) -> None:
        await self.save({**property_info, self.id_field: self.RECORD_ID})
