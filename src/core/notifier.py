"""
Timetable — Notification Center.

The single way notifications enter the log. Applies the quiet-hours gate,
appends to the NotificationStore and fires the optional side effects
(sound cue, push). Side effects fail silently: a missing audio device or an
unreachable push provider never blocks the append.

Provider-agnostic: depends on the PushPort / SoundPort protocols only.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from src.core.notification_rules import (
    build_message,
    bypasses_quiet_hours,
    is_quiet_hours,
    make_notification,
)
from src.data.models import Notification, NotificationSettings, NotificationType

if TYPE_CHECKING:
    from src.core.notification_store import NotificationStore
    from src.data.models import Task
    from src.ports.notification_port import PushPort, SoundPort

logger = logging.getLogger(__name__)

DEFAULT_PUSH_TITLE = "Timetable"


class NotificationCenter:
    """Gatekeeper and side-effect dispatcher for the notification log."""

    def __init__(
        self,
        store: NotificationStore,
        settings: Callable[[], NotificationSettings],
        sound: SoundPort | None = None,
        push: PushPort | None = None,
        on_change: Callable[[NotificationStore], None] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._settings = settings
        self._sound = sound
        self._push = push
        self._on_change = on_change
        self._clock = clock or datetime.now

    @property
    def store(self) -> NotificationStore:
        return self._store

    def is_quiet_hours(self, now: datetime | None = None) -> bool:
        return is_quiet_hours(self._settings().quiet_hours, now or self._clock())

    async def add(self, notification: Notification, now: datetime | None = None) -> bool:
        """Append a notification unless quiet hours suppress it.

        Returns True if the notification was appended.
        """
        settings = self._settings()
        if not bypasses_quiet_hours(notification.type) and self.is_quiet_hours(now):
            logger.debug("Quiet hours: suppressed %s for %s", notification.type.value, notification.task_id)
            return False

        self._store.append(notification)
        logger.info("Notification [%s] %s", notification.type.value, notification.message)
        self._changed()

        if settings.sound_enabled and self._sound is not None:
            try:
                self._sound.play()
            except Exception as exc:
                logger.debug("Sound cue failed: %s", exc)

        if settings.push_enabled and self._push is not None:
            try:
                await self._push.push(notification.task_title or DEFAULT_PUSH_TITLE, notification.message)
            except Exception as exc:
                logger.warning("Push notification failed: %s", exc)

        return True

    async def notify_completion(self, task: Task, now: datetime | None = None) -> bool:
        """User-driven notification when a task is marked done."""
        now = now or self._clock()
        notification = make_notification(
            NotificationType.COMPLETION,
            build_message(NotificationType.COMPLETION, task.title),
            int(now.timestamp() * 1000),
            task,
        )
        return await self.add(notification, now)

    def mark_read(self, notification_id: str) -> bool:
        changed = self._store.mark_read(notification_id)
        if changed:
            self._changed()
        return changed

    def mark_all_read(self) -> None:
        self._store.mark_all_read()
        self._changed()

    def clear_all(self) -> None:
        self._store.clear_all()
        self._changed()

    def _changed(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self._store)
        except Exception as exc:
            logger.error("Notification change hook failed: %s", exc)
