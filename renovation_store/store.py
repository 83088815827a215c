"""
Application-level store.

Owns the database handle, the flat store and the log journal built from a
StoreConfig, and exposes one repository per entity.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import StoreConfig
from .database import DEFAULT_STORES, LocalDatabase
from .exceptions import LocalStoreError
from .flat_store import FlatStore
from .journal import LogJournal
from .notifications import Notifier
from .repositories import (
    ClientsRepository,
    EntityRepository,
    ProjetsRepository,
    PropertyRepository,
    RoomsRepository,
    TravauxRepository,
)

logger = logging.getLogger(__name__)


class RenovationStore:
    """
    Local storage for the renovation quote application.

    Usage:
        >>> async with RenovationStore(StoreConfig(data_dir=path)) as store:
        ...     await store.rooms.save({"id": "r1", "name": "Salon"})
        ...     projets = await store.projets.get_projets_for_client("c1")
    """

    def __init__(self, config: StoreConfig | None = None, notifier: Notifier | None = None):
        self.config = config or StoreConfig.from_env()
        self.notifier = notifier or Notifier()
        self.database = LocalDatabase.from_config(self.config, DEFAULT_STORES)
        self.flat_store = FlatStore(self.config.flat_store_dir)

        mirror = self.config.mirror_writes
        self.clients = ClientsRepository(self.database, self.flat_store, self.notifier, mirror)
        self.rooms = RoomsRepository(self.database, self.flat_store, self.notifier, mirror)
        self.travaux = TravauxRepository(self.database, self.flat_store, self.notifier, mirror)
        self.projets = ProjetsRepository(self.database, self.flat_store, self.notifier, mirror)
        self.property = PropertyRepository(self.database, self.flat_store, self.notifier)

        self.journal: LogJournal | None = None
        if self.config.journal_enabled:
            self.journal = LogJournal(
                self.flat_store,
                key=self.config.journal_key,
                max_entries=self.config.journal_max_entries,
                level=getattr(logging, self.config.log_level, logging.INFO),
            )

    @property
    def repositories(self) -> dict[str, EntityRepository]:
        return {
            repo.store_name: repo
            for repo in (self.clients, self.rooms, self.travaux, self.projets, self.property)
        }

    def repository(self, store_name: str) -> EntityRepository:
        try:
            return self.repositories[store_name]
        except KeyError:
            raise KeyError(f"No repository for store: {store_name}") from None

    async def open(self) -> None:
        """Attach the journal and initialize every repository."""
        if self.journal is not None:
            self.journal.attach()

        for name, repo in self.repositories.items():
            initialized = await repo.initialize()
            logger.debug(
                f"Repository {name}: db_available={repo.is_db_available}, initialized={initialized}"
            )

    async def close(self) -> None:
        """Flush the journal and close the database."""
        if self.journal is not None:
            try:
                await self.journal.flush()
            except LocalStoreError as e:
                logger.warning(f"Could not persist log journal: {e}")
            self.journal.detach()
        await self.database.close()

    async def __aenter__(self) -> RenovationStore:
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()
