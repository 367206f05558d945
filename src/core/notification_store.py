"""Notification store — bounded, newest-first log of emitted notifications.

The rule engine reads it for de-duplication and only ever appends (through
the notification center); consumers mark entries read or clear the log.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from src.data.models import Notification

logger = logging.getLogger(__name__)

MAX_NOTIFICATIONS = 50


class NotificationStore:
    """Newest-first log capped to the most recent `limit` entries."""

    def __init__(self, items: list[Notification] | None = None, limit: int = MAX_NOTIFICATIONS) -> None:
        self._limit = limit
        self._items: list[Notification] = list(items or [])[:limit]

    @property
    def items(self) -> tuple[Notification, ...]:
        return tuple(self._items)

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self._items if not n.read)

    def __len__(self) -> int:
        return len(self._items)

    def append(self, notification: Notification) -> None:
        """Insert at the front and evict the oldest beyond the cap."""
        self._items = [notification, *self._items][: self._limit]

    def mark_read(self, notification_id: str) -> bool:
        found = False
        updated: list[Notification] = []
        for n in self._items:
            if n.id == notification_id and not n.read:
                n = replace(n, read=True)
                found = True
            updated.append(n)
        self._items = updated
        return found

    def mark_all_read(self) -> None:
        self._items = [n if n.read else replace(n, read=True) for n in self._items]

    def clear_all(self) -> None:
        self._items = []
        logger.info("Notification log cleared")

    def to_list(self) -> list[dict]:
        return [n.to_dict() for n in self._items]
