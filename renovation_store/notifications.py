"""
User-facing notifications.

Repositories report the outcome of write operations here; front ends
subscribe a callback to display them (toasts, status bar, console).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class NotificationLevel(Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    """A message addressed to the user about one operation on one entity."""

    level: NotificationLevel
    title: str
    description: str | None = None
    operation: str | None = None
    entity: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "level": self.level.value,
            "title": self.title,
            "description": self.description,
            "operation": self.operation,
            "entity": self.entity,
            "created_at": self.created_at.isoformat(),
        }


Subscriber = Callable[[Notification], None]

_LOG_LEVELS = {
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


class Notifier:
    """Dispatches notifications to subscribers and logs them."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback; returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, notification: Notification) -> None:
        logger.log(
            _LOG_LEVELS[notification.level],
            notification.title,
            extra={
                "category": "ui",
                "operation": notification.operation,
                "entity": notification.entity,
            },
        )
        for callback in list(self._subscribers):
            try:
                callback(notification)
            except Exception as e:
                logger.warning(f"Notification subscriber failed: {e}")

    def success(
        self, title: str, description: str | None = None, operation: str | None = None, entity: str | None = None
    ) -> None:
        self.notify(Notification(NotificationLevel.SUCCESS, title, description, operation, entity))

    def error(
        self, title: str, description: str | None = None, operation: str | None = None, entity: str | None = None
    ) -> None:
        self.notify(Notification(NotificationLevel.ERROR, title, description, operation, entity))
