"""
Flat serialized store.

A browser ``localStorage`` analogue on disk: one string value per key,
each key kept in its own file under a directory. Collections live under
a key as a JSON array of records; a missing key reads as an empty array.

Writes are atomic (temp file + rename) but a read-modify-write of a
collection is not protected against concurrent writers.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from urllib.parse import quote, unquote

import aiofiles
import aiofiles.os

from .collection import CollectionStore, Record, ReplaceResult, diff_records
from .exceptions import ItemNotFoundError, StorageIOError

logger = logging.getLogger(__name__)

_SUFFIX = ".json"
_PROBE_KEY = "storage_test"


class FlatStore:
    """Key/value store holding one string per key in a directory."""

    def __init__(self, directory: str | Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / (quote(key, safe="") + _SUFFIX)

    async def get_item(self, key: str) -> str | None:
        """Return the value stored under ``key``, or None."""
        path = self._path(key)
        try:
            if not await aiofiles.os.path.exists(path):
                return None
            async with aiofiles.open(path, encoding="utf-8") as f:
                return await f.read()
        except (OSError, UnicodeDecodeError) as e:
            raise StorageIOError("get_item", str(path), e) from e

    async def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        path = self._path(key)
        try:
            await aiofiles.os.makedirs(self.directory, exist_ok=True)
        except OSError as e:
            raise StorageIOError("create_directory", str(self.directory), e) from e

        fd, temp_path = tempfile.mkstemp(dir=self.directory, prefix=".tmp_", suffix=_SUFFIX)
        try:
            os.close(fd)
            async with aiofiles.open(temp_path, "w", encoding="utf-8") as f:
                await f.write(value)
                await f.flush()
                os.fsync(f.fileno())

            await aiofiles.os.replace(temp_path, path)
        except Exception as e:
            try:
                await aiofiles.os.remove(temp_path)
            except OSError:
                pass
            raise StorageIOError("set_item", str(path), e) from e

    async def remove_item(self, key: str) -> None:
        """Remove ``key``. Removing a missing key is a no-op."""
        path = self._path(key)
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageIOError("remove_item", str(path), e) from e

    async def keys(self) -> list[str]:
        """List stored keys, sorted."""
        if not self.directory.is_dir():
            return []
        return sorted(
            unquote(entry.name[: -len(_SUFFIX)])
            for entry in self.directory.iterdir()
            if entry.is_file() and entry.name.endswith(_SUFFIX) and not entry.name.startswith(".")
        )

    async def size_of(self, key: str) -> int:
        """Size in bytes of the value under ``key`` (0 when missing)."""
        path = self._path(key)
        try:
            stat = await aiofiles.os.stat(path)
        except FileNotFoundError:
            return 0
        except OSError as e:
            raise StorageIOError("stat", str(path), e) from e
        return stat.st_size

    async def is_available(self) -> bool:
        """Check the store can be written by storing and removing a probe key."""
        try:
            await self.set_item(_PROBE_KEY, "test")
            await self.remove_item(_PROBE_KEY)
            return True
        except StorageIOError as e:
            logger.warning(f"Flat store not writable at {self.directory}: {e}")
            return False

    async def read_list(self, key: str) -> list[Record]:
        """Parse the JSON array stored under ``key``; missing key gives []."""
        raw = await self.get_item(key)
        if raw is None or not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise StorageIOError("parse_json", key, e) from e
        if not isinstance(data, list):
            raise StorageIOError("parse_json", key, TypeError("expected a JSON array"))
        return data

    async def write_list(self, key: str, items: list[Record]) -> None:
        """Serialize the whole array and store it under ``key``."""
        try:
            payload = json.dumps(items, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageIOError("serialize_json", key, e) from e
        await self.set_item(key, payload)


class FlatCollection(CollectionStore):
    """Collection stored as one JSON array under a flat-store key."""

    def __init__(self, store: FlatStore, key: str, id_field: str = "id") -> None:
        self.store = store
        self.key = key
        self.name = key
        self.id_field = id_field

    async def get_all(self) -> list[Record]:
        return await self.store.read_list(self.key)

    async def get(self, item_id: str) -> Record | None:
        for item in await self.store.read_list(self.key):
            if self.record_id(item) == item_id:
                return item
        return None

    async def add(self, item: Record) -> str:
        items = await self.store.read_list(self.key)
        items.append(item)
        await self.store.write_list(self.key, items)
        return self.record_id(item)

    async def update(self, item_id: str, item: Record) -> None:
        if await self.store.get_item(self.key) is None:
            raise ItemNotFoundError(item_id, self.key)

        items = await self.store.read_list(self.key)
        for index, existing in enumerate(items):
            if self.record_id(existing) == item_id:
                items[index] = item
                break
        else:
            raise ItemNotFoundError(item_id, self.key)
        await self.store.write_list(self.key, items)

    async def delete(self, item_id: str) -> None:
        if await self.store.get_item(self.key) is None:
            return
        items = await self.store.read_list(self.key)
        remaining = [item for item in items if self.record_id(item) != item_id]
        await self.store.write_list(self.key, remaining)

    async def clear(self) -> None:
        await self.store.remove_item(self.key)

    async def replace_all(self, items: list[Record]) -> ReplaceResult:
        existing = await self.store.read_list(self.key)
        to_add, to_update, to_delete = diff_records(existing, items, self.id_field)
        ordered = {self.record_id(item): item for item in items}
        await self.store.write_list(self.key, list(ordered.values()))
        return ReplaceResult(added=len(to_add), updated=len(to_update), deleted=len(to_delete))
