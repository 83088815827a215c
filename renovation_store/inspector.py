"""
Storage inspection.

Summarizes what both backends currently hold, for debug screens and the
command line tool.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .database import LocalDatabase
from .exceptions import LocalStoreError, StorageIOError
from .flat_store import FlatStore


@dataclass
class FlatKeyInfo:
    key: str
    size_bytes: int
    kind: str  # array, object, string or invalid
    length: int | None = None


@dataclass
class StorageStatus:
    """Snapshot of both backends."""

    flat_store_available: bool
    flat_store_path: str
    flat_items: list[FlatKeyInfo] = field(default_factory=list)
    database_available: bool = False
    database_path: str = ""
    collections: dict[str, int] = field(default_factory=dict)

    @property
    def flat_store_size(self) -> int:
        return sum(item.size_bytes for item in self.flat_items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "flat_store": {
                "available": self.flat_store_available,
                "path": self.flat_store_path,
                "size": format_size(self.flat_store_size),
                "items": [
                    {
                        "key": item.key,
                        "size": format_size(item.size_bytes),
                        "type": item.kind,
                        "length": item.length,
                    }
                    for item in self.flat_items
                ],
            },
            "database": {
                "available": self.database_available,
                "path": self.database_path,
                "collections": self.collections,
            },
        }


def format_size(size_bytes: int) -> str:
    """Human readable size (B, KB, MB)."""
    if size_bytes < 1024:
        return f"{size_bytes} B"
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


async def _describe_key(flat_store: FlatStore, key: str) -> FlatKeyInfo:
    size = await flat_store.size_of(key)
    try:
        raw = await flat_store.get_item(key) or ""
    except StorageIOError:
        return FlatKeyInfo(key, size, "invalid")
    try:
        value = json.loads(raw)
    except json.JSONDecodeError:
        return FlatKeyInfo(key, size, "string" if raw else "invalid")
    if isinstance(value, list):
        return FlatKeyInfo(key, size, "array", len(value))
    if isinstance(value, dict):
        return FlatKeyInfo(key, size, "object", len(value))
    return FlatKeyInfo(key, size, "string")


async def inspect_storage(database: LocalDatabase, flat_store: FlatStore) -> StorageStatus:
    """Probe both backends and collect sizes and record counts."""
    status = StorageStatus(
        flat_store_available=await flat_store.is_available(),
        flat_store_path=str(flat_store.directory),
        database_path=str(database.db_path),
    )

    for key in await flat_store.keys():
        status.flat_items.append(await _describe_key(flat_store, key))

    status.database_available = await database.is_available()
    if status.database_available:
        for store_name in database.stores:
            try:
                status.collections[store_name] = await database.count(store_name)
            except LocalStoreError:
                status.collections[store_name] = -1

    return status
