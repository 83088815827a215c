"""
Transactional local database backed by SQLite.

The database is an explicitly owned handle: callers construct it with the
list of collections it declares (its schema), open it, hand it to the
adapters that need it, and close it when done. Each declared collection is
a table holding one JSON document per record id.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiosqlite

from .collection import CollectionStore, Record, ReplaceResult, diff_records
from .config import StoreConfig
from .exceptions import (
    ItemExistsError,
    ItemNotFoundError,
    ProbeError,
    StorageIOError,
    StoreNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_STORES = ("clients", "rooms", "travaux", "projets", "property")

_STORE_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class LocalDatabase:
    """
    SQLite database holding one table per declared collection.

    Usage:
        >>> async with LocalDatabase("app.db", stores=("rooms",)) as db:
        ...     rooms = db.open_collection("rooms")
        ...     await rooms.add({"id": "r1", "name": "Salon"})
    """

    def __init__(
        self,
        db_path: str | Path = ":memory:",
        stores: tuple[str, ...] | list[str] = DEFAULT_STORES,
    ):
        for store_name in stores:
            if not _STORE_NAME_RE.match(store_name):
                raise ValidationError("store_name", "must be a plain identifier", store_name)

        self.db_path = db_path
        self.stores = tuple(stores)
        self.conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()
        self._open_lock = asyncio.Lock()

    @classmethod
    def from_config(
        cls,
        config: StoreConfig,
        stores: tuple[str, ...] | list[str] = DEFAULT_STORES,
    ) -> LocalDatabase:
        """Create a database handle from a store configuration."""
        return cls(config.db_path, stores)

    @property
    def is_open(self) -> bool:
        return self.conn is not None

    async def open(self) -> None:
        """Open the connection and create the declared tables.

        Concurrent callers share the single connection.

        Raises:
            ProbeError: If the database cannot be opened
        """
        if self.conn is not None:
            return

        async with self._open_lock:
            if self.conn is not None:
                return

            path = str(self.db_path)
            conn = None
            try:
                if path != ":memory:":
                    Path(path).parent.mkdir(parents=True, exist_ok=True)
                conn = await aiosqlite.connect(path, isolation_level=None)
                for store_name in self.stores:
                    await conn.execute(
                        f'CREATE TABLE IF NOT EXISTS "{store_name}" ('
                        "id TEXT NOT NULL PRIMARY KEY, "
                        "data TEXT NOT NULL)"
                    )
                await conn.execute("SELECT 1")
            except (sqlite3.Error, OSError) as e:
                if conn is not None:
                    await conn.close()
                raise ProbeError(path, e) from e

            self.conn = conn
            logger.info(f"Local database opened at {path} ({len(self.stores)} stores)")

    async def is_available(self) -> bool:
        """Try to open the database; report whether it succeeded."""
        try:
            await self.open()
            return True
        except ProbeError as e:
            logger.error(f"Local database is not available: {e.details.get('cause', e)}")
            return False

    async def close(self) -> None:
        """Close the SQLite connection."""
        if self.conn:
            await self.conn.close()
            self.conn = None

    async def __aenter__(self) -> LocalDatabase:
        await self.open()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def open_collection(self, store_name: str, id_field: str = "id") -> SQLiteCollection:
        """Return the collection declared under ``store_name``.

        Raises:
            StoreNotFoundError: If the store is not part of the schema
        """
        if store_name not in self.stores:
            raise StoreNotFoundError(store_name)
        return SQLiteCollection(self, store_name, id_field)

    def connection(self) -> aiosqlite.Connection:
        if self.conn is None:
            raise StorageIOError("connect", str(self.db_path), RuntimeError("database is not open"))
        return self.conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run statements in one transaction; commit on success, roll back on error."""
        conn = self.connection()
        async with self._lock:
            await conn.execute("BEGIN")
            try:
                yield conn
            except BaseException:
                await conn.execute("ROLLBACK")
                raise
            else:
                await conn.execute("COMMIT")

    @asynccontextmanager
    async def writer(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialize single writes against running transactions."""
        conn = self.connection()
        async with self._lock:
            yield conn

    async def count(self, store_name: str) -> int:
        """Number of records in a declared store."""
        if store_name not in self.stores:
            raise StoreNotFoundError(store_name)
        try:
            async with self.connection().execute(f'SELECT COUNT(*) FROM "{store_name}"') as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageIOError("count", store_name, e) from e
        return row[0] if row else 0


class SQLiteCollection(CollectionStore):
    """One declared collection of a LocalDatabase."""

    def __init__(self, database: LocalDatabase, store_name: str, id_field: str = "id") -> None:
        self.database = database
        self.name = store_name
        self.id_field = id_field
        self._table = f'"{store_name}"'

    def _encode(self, item: Record) -> tuple[str, str]:
        item_id = self.record_id(item)
        if item_id is None or item_id == "":
            raise ValidationError(self.id_field, "record has no identifier")
        try:
            return str(item_id), json.dumps(item, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageIOError("serialize_json", self.name, e) from e

    async def get_all(self) -> list[Record]:
        try:
            async with self.database.connection().execute(
                f"SELECT data FROM {self._table} ORDER BY rowid"
            ) as cursor:
                rows = await cursor.fetchall()
        except sqlite3.Error as e:
            raise StorageIOError("get_all", self.name, e) from e
        return [json.loads(row[0]) for row in rows]

    async def get(self, item_id: str) -> Record | None:
        try:
            async with self.database.connection().execute(
                f"SELECT data FROM {self._table} WHERE id = ?", (item_id,)
            ) as cursor:
                row = await cursor.fetchone()
        except sqlite3.Error as e:
            raise StorageIOError("get", self.name, e) from e
        return json.loads(row[0]) if row else None

    async def add(self, item: Record) -> str:
        item_id, data = self._encode(item)
        async with self.database.writer() as conn:
            await self._insert(conn, item_id, data)
        return item_id

    async def update(self, item_id: str, item: Record) -> None:
        _, data = self._encode(item)
        async with self.database.writer() as conn:
            await self._update(conn, item_id, data)

    async def delete(self, item_id: str) -> None:
        async with self.database.writer() as conn:
            try:
                await conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (item_id,))
            except sqlite3.Error as e:
                raise StorageIOError("delete", self.name, e) from e

    async def clear(self) -> None:
        async with self.database.writer() as conn:
            try:
                await conn.execute(f"DELETE FROM {self._table}")
            except sqlite3.Error as e:
                raise StorageIOError("clear", self.name, e) from e

    async def replace_all(self, items: list[Record]) -> ReplaceResult:
        async with self.database.transaction() as conn:
            existing = await self.get_all()
            to_add, to_update, to_delete = diff_records(existing, items, self.id_field)
            for item in to_update:
                item_id, data = self._encode(item)
                await self._update(conn, item_id, data)
            for item in to_add:
                item_id, data = self._encode(item)
                await self._insert(conn, item_id, data)
            for item_id in to_delete:
                try:
                    await conn.execute(f"DELETE FROM {self._table} WHERE id = ?", (item_id,))
                except sqlite3.Error as e:
                    raise StorageIOError("delete", self.name, e) from e

        return ReplaceResult(added=len(to_add), updated=len(to_update), deleted=len(to_delete))

    async def _insert(self, conn: aiosqlite.Connection, item_id: str, data: str) -> None:
        try:
            await conn.execute(
                f"INSERT INTO {self._table} (id, data) VALUES (?, ?)", (item_id, data)
            )
        except sqlite3.IntegrityError as e:
            raise ItemExistsError(item_id, self.name) from e
        except sqlite3.Error as e:
            raise StorageIOError("add", self.name, e) from e

    async def _update(self, conn: aiosqlite.Connection, item_id: str, data: str) -> None:
        try:
            cursor = await conn.execute(
                f"UPDATE {self._table} SET data = ? WHERE id = ?", (data, item_id)
            )
        except sqlite3.Error as e:
            raise StorageIOError("update", self.name, e) from e
        if cursor.rowcount == 0:
            raise ItemNotFoundError(item_id, self.name)
