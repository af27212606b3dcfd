"""In-memory notification center feeding short user-facing messages."""

from __future__ import annotations

from relmap.core.errors import KnowledgeMapError
from relmap.notifications.models import Notification, NotificationLevel


class NotificationCenter:
    """In-memory queue of notifications for one map session."""

    def __init__(self, max_items: int = 200) -> None:
        self._notifications: list[Notification] = []
        self._max_items = max_items

    def push(self, notification: Notification) -> Notification:
        self._notifications.append(notification)
        if len(self._notifications) > self._max_items:
            del self._notifications[: len(self._notifications) - self._max_items]
        return notification

    def info(self, title: str, description: str = "") -> Notification:
        return self.push(Notification(level=NotificationLevel.INFO, title=title, description=description))

    def success(self, title: str, description: str = "") -> Notification:
        return self.push(Notification(level=NotificationLevel.SUCCESS, title=title, description=description))

    def error(self, title: str, description: str = "") -> Notification:
        return self.push(Notification(level=NotificationLevel.ERROR, title=title, description=description))

    def from_error(self, exc: KnowledgeMapError) -> Notification:
        return self.error(exc.title, exc.message)

    def list_all(self) -> list[Notification]:
        return list(self._notifications)

    def drain(self) -> list[Notification]:
        """Return and forget all pending notifications."""
        drained, self._notifications = self._notifications, []
        return drained

    @property
    def count(self) -> int:
        return len(self._notifications)
