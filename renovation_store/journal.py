"""
Persisted log journal.

Log records are buffered in memory by a logging handler and appended to a
flat-store key on ``flush``. The journal keeps the most recent entries
only, and offers the inspection helpers the debug screens use: filtering,
export, per-session grouping and statistics.
"""

from __future__ import annotations

import json
import logging
import time
import traceback
import uuid
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from .flat_store import FlatStore
from .logging_utils import record_extras

logger = logging.getLogger(__name__)

LOG_LEVELS = ("debug", "info", "warn", "error")

SESSION_ID = f"session_{int(time.time() * 1000)}"


def _level_name(levelno: int) -> str:
    if levelno >= logging.ERROR:
        return "error"
    if levelno >= logging.WARNING:
        return "warn"
    if levelno >= logging.INFO:
        return "info"
    return "debug"


@dataclass
class LogEntry:
    """One persisted log entry."""

    id: str
    timestamp: str
    level: str
    message: str
    category: str = "other"
    context: dict[str, Any] | None = None
    stack: str | None = None
    session_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
            "category": self.category,
        }
        if self.context:
            data["context"] = self.context
        if self.stack:
            data["stack"] = self.stack
        if self.session_id:
            data["sessionId"] = self.session_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LogEntry:
        """Deserialize from dictionary."""
        return cls(
            id=data.get("id", ""),
            timestamp=data["timestamp"],
            level=data.get("level", "info"),
            message=data.get("message", ""),
            category=data.get("category", "other"),
            context=data.get("context"),
            stack=data.get("stack"),
            session_id=data.get("sessionId"),
        )

    @property
    def time(self) -> datetime:
        return datetime.fromisoformat(self.timestamp)


class JournalHandler(logging.Handler):
    """Logging handler that buffers records as journal entries.

    ``emit`` does no I/O; LogJournal.flush persists the buffer. With
    ``max_pending`` set, only the newest entries are kept until then.
    """

    def __init__(
        self,
        session_id: str = SESSION_ID,
        level: int = logging.NOTSET,
        max_pending: int | None = None,
    ) -> None:
        super().__init__(level)
        self.session_id = session_id
        self._pending: deque[LogEntry] = deque(maxlen=max_pending)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            context = {
                key: value if isinstance(value, (str, int, float, bool, type(None))) else str(value)
                for key, value in record_extras(record).items()
            }
            category = str(context.pop("category", "other") or "other")

            stack = None
            if record.exc_info and record.exc_info[0] is not None:
                stack = "".join(traceback.format_exception(*record.exc_info))
                exc = record.exc_info[1]
                context["errorName"] = type(exc).__name__
                context["errorMessage"] = str(exc)

            self.add(
                LogEntry(
                    id=uuid.uuid4().hex,
                    timestamp=datetime.fromtimestamp(record.created, UTC).isoformat(),
                    level=_level_name(record.levelno),
                    message=record.getMessage(),
                    category=category,
                    context=context or None,
                    stack=stack,
                    session_id=self.session_id,
                )
            )
        except Exception:
            self.handleError(record)

    def add(self, entry: LogEntry) -> None:
        self._pending.append(entry)

    def drain(self) -> list[LogEntry]:
        """Take every buffered entry."""
        pending = list(self._pending)
        self._pending.clear()
        return pending

    def requeue(self, entries: list[LogEntry]) -> None:
        """Put entries back in front of the buffer, dropping the oldest past the cap."""
        self._pending = deque([*entries, *self._pending], maxlen=self._pending.maxlen)

    @property
    def pending_count(self) -> int:
        return len(self._pending)


class LogJournal:
    """Log entries persisted under one flat-store key, newest last.

    Usage:
        >>> journal = LogJournal(FlatStore(path))
        >>> journal.attach()
        >>> logging.getLogger("renovation_store").info("hello")
        >>> await journal.flush()
    """

    def __init__(
        self,
        flat_store: FlatStore,
        key: str = "app_logs",
        max_entries: int = 1000,
        session_id: str = SESSION_ID,
        level: int = logging.DEBUG,
    ) -> None:
        self.flat_store = flat_store
        self.key = key
        self.max_entries = max_entries
        self.session_id = session_id
        self.handler = JournalHandler(session_id, level, max_pending=max_entries)
        self._attached_to: list[tuple[logging.Logger, int]] = []

    def attach(self, logger_name: str = "renovation_store") -> None:
        """Start collecting records from ``logger_name`` and its children.

        The logger level is lowered to the journal level while attached.
        """
        target = logging.getLogger(logger_name)
        if self.handler in target.handlers:
            return
        target.addHandler(self.handler)
        self._attached_to.append((target, target.level))
        if target.getEffectiveLevel() > self.handler.level:
            target.setLevel(self.handler.level)

    def detach(self) -> None:
        for target, previous_level in self._attached_to:
            target.removeHandler(self.handler)
            target.setLevel(previous_level)
        self._attached_to.clear()

    def record(
        self,
        level: str,
        message: str,
        category: str = "other",
        context: dict[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> LogEntry:
        """Add an entry directly, without going through ``logging``."""
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {level}")

        stack = None
        if error is not None:
            context = {**(context or {}), "errorName": type(error).__name__, "errorMessage": str(error)}
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))

        entry = LogEntry(
            id=uuid.uuid4().hex,
            timestamp=datetime.now(UTC).isoformat(),
            level=level,
            message=message,
            category=category,
            context=context,
            stack=stack,
            session_id=self.session_id,
        )
        self.handler.add(entry)
        return entry

    async def flush(self) -> int:
        """Append buffered entries to the store, keeping the newest ``max_entries``.

        Returns:
            Number of entries written
        """
        entries = self.handler.drain()
        if not entries:
            return 0

        try:
            stored = await self.flat_store.read_list(self.key)
            stored.extend(entry.to_dict() for entry in entries)
            await self.flat_store.write_list(self.key, stored[-self.max_entries :])
        except Exception:
            # Put entries back so a later flush can retry
            self.handler.requeue(entries)
            raise
        return len(entries)

    async def get_logs(self) -> list[LogEntry]:
        """Every stored entry, oldest first (buffered entries are flushed first)."""
        await self.flush()
        return [LogEntry.from_dict(data) for data in await self.flat_store.read_list(self.key)]

    async def filter_logs(
        self,
        level: str | None = None,
        category: str | None = None,
        search: str | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
        session_id: str | None = None,
    ) -> list[LogEntry]:
        """Stored entries matching every given criterion.

        ``search`` matches the message or the serialized context,
        case-insensitively. Naive datetimes are taken as UTC.
        """
        date_from = _aware(date_from)
        date_to = _aware(date_to)
        needle = search.lower() if search else None

        matches = []
        for entry in await self.get_logs():
            if level and entry.level != level:
                continue
            if category and entry.category != category:
                continue
            if session_id and entry.session_id != session_id:
                continue
            if needle:
                in_message = needle in entry.message.lower()
                in_context = bool(entry.context) and needle in json.dumps(entry.context).lower()
                if not in_message and not in_context:
                    continue
            if date_from and entry.time < date_from:
                continue
            if date_to and entry.time > date_to:
                continue
            matches.append(entry)
        return matches

    async def clear_logs(self) -> None:
        self.handler.drain()
        await self.flat_store.remove_item(self.key)

    async def export_logs(self, **filters: Any) -> str:
        """Entries as an indented JSON array; keyword arguments filter like filter_logs."""
        entries = await self.filter_logs(**filters) if filters else await self.get_logs()
        return json.dumps([entry.to_dict() for entry in entries], indent=2, ensure_ascii=False)

    async def get_sessions(self) -> list[dict[str, Any]]:
        """Sessions seen in the journal, most recent first."""
        sessions: dict[str, dict[str, Any]] = {}
        for entry in await self.get_logs():
            if not entry.session_id:
                continue
            session = sessions.setdefault(
                entry.session_id,
                {"id": entry.session_id, "start_time": entry.timestamp, "count": 0},
            )
            session["count"] += 1
        return sorted(sessions.values(), key=lambda s: s["start_time"], reverse=True)

    async def get_stats(self) -> dict[str, Any]:
        entries = await self.get_logs()
        by_level = dict.fromkeys(LOG_LEVELS, 0)
        by_category: dict[str, int] = {}
        for entry in entries:
            by_level[entry.level] = by_level.get(entry.level, 0) + 1
            if entry.category:
                by_category[entry.category] = by_category.get(entry.category, 0) + 1

        return {
            "total": len(entries),
            "by_level": by_level,
            "by_category": by_category,
            "sessions": len(await self.get_sessions()),
        }


def _aware(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
