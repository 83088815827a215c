"""
Abstract collection store interface.

Defines the contract both backends (SQLite database and flat JSON store)
implement for a single named collection of records. Records are plain
JSON-serializable dicts carrying one identifier field.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

Record = dict[str, Any]


@dataclass
class ReplaceResult:
    """Counts produced by a reconciliation pass."""

    added: int = 0
    updated: int = 0
    deleted: int = 0

    @property
    def total(self) -> int:
        return self.added + self.updated + self.deleted


class CollectionStore(ABC):
    """Abstract interface for one collection of records.

    Implementations never cache; every call reads or writes the backend.
    """

    name: str
    id_field: str = "id"

    def record_id(self, item: Record) -> str:
        """Return the identifier of a record."""
        return item.get(self.id_field)  # type: ignore[return-value]

    @abstractmethod
    async def get_all(self) -> list[Record]:
        """Read every record of the collection, in backend order."""
        ...

    @abstractmethod
    async def get(self, item_id: str) -> Record | None:
        """Look up one record by id.

        Returns:
            The record, or None when no record has this id
        """
        ...

    @abstractmethod
    async def add(self, item: Record) -> str:
        """Insert a record.

        Returns:
            The record id
        """
        ...

    @abstractmethod
    async def update(self, item_id: str, item: Record) -> None:
        """Replace the record stored under ``item_id``.

        Raises:
            ItemNotFoundError: If no record has this id
        """
        ...

    @abstractmethod
    async def delete(self, item_id: str) -> None:
        """Remove a record by id. Removing a missing id is a no-op."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Remove every record of the collection."""
        ...

    @abstractmethod
    async def replace_all(self, items: list[Record]) -> ReplaceResult:
        """Make the collection match ``items`` exactly.

        Every item is upserted; every stored record whose id is absent
        from ``items`` is deleted.
        """
        ...


def diff_records(
    existing: list[Record], items: list[Record], id_field: str = "id"
) -> tuple[list[Record], list[Record], list[str]]:
    """Split a desired-state list against the stored records.

    When ``items`` repeats an id, the last occurrence wins.

    Returns:
        (records to add, records to update, ids to delete)
    """
    existing_ids = {record.get(id_field) for record in existing}
    wanted = {item.get(id_field): item for item in items}
    wanted_ids = set(wanted)

    to_add = [item for item_id, item in wanted.items() if item_id not in existing_ids]
    to_update = [item for item_id, item in wanted.items() if item_id in existing_ids]
    to_delete = [
        record.get(id_field) for record in existing if record.get(id_field) not in wanted_ids
    ]
    return to_add, to_update, to_delete
