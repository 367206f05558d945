"""
Timetable — Repository.

Maps the engine's state (tasks, notification settings, notification log) to
keys in the key-value store, and owns the schema version marker plus the
backfill that brings old task records up to the current shape.

Anything missing or malformed in the store falls back to defaults; a bad
record is skipped with a warning rather than failing the whole load.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from src.data.models import (
    DEFAULT_ESTIMATED_DURATION,
    Notification,
    NotificationSettings,
    Task,
    TimeTracking,
)

if TYPE_CHECKING:
    from src.data.db import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_VERSION = "1.0"
KEY_PREFIX = "timetable-"
TASKS_KEY = "timetable-tasks"
QUARANTINE_KEY = "timetable-tasks-quarantine"
NOTIFICATIONS_KEY = "timetable-notifications"
VERSION_KEY = "timetable-version"
SETTINGS_KEY = "notification-settings"


def migrate_task(raw: dict, now_iso: str | None = None) -> dict:
    """Backfill fields newer than the stored record. Keeps unknown keys."""
    now_iso = now_iso or datetime.now(timezone.utc).isoformat()
    tracking = raw.get("timeTracking")
    if not isinstance(tracking, dict):
        tracking = TimeTracking().to_dict()
    return {
        **raw,
        "timeTracking": tracking,
        "estimatedDuration": raw.get("estimatedDuration") or DEFAULT_ESTIMATED_DURATION,
        "actualDuration": raw.get("actualDuration") or 0,
        "createdAt": raw.get("createdAt") or now_iso,
        "updatedAt": raw.get("updatedAt") or now_iso,
        "completed": raw.get("completed") or False,
        "completedAt": raw.get("completedAt") or None,
        "tags": raw.get("tags") or [],
        "attachments": raw.get("attachments") or [],
        "recurrence": raw.get("recurrence") or None,
        "priority": raw.get("priority") or "medium",
        "category": raw.get("category") or "personal",
    }


def migrate_tasks(raw_tasks: Any) -> list:
    """Backfill every dict record; non-list input yields an empty list.

    Entries that are not dicts pass through untouched so a migration never
    drops them; the loader sets them aside.
    """
    if not isinstance(raw_tasks, list):
        return []
    now_iso = datetime.now(timezone.utc).isoformat()
    return [migrate_task(t, now_iso) if isinstance(t, dict) else t for t in raw_tasks]


class TimetableRepository:
    """Typed load/save on top of the key-value store."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def load_tasks(self) -> list[Task]:
        """Load every readable task.

        Anything that cannot become a Task is copied to QUARANTINE_KEY before
        the next save_tasks can overwrite it.
        """
        raw = self._store.get(TASKS_KEY, [])
        if raw is not None and not isinstance(raw, list):
            logger.error("Stored task collection is not a list, setting it aside")
            self._quarantine([raw])
            return []

        tasks: list[Task] = []
        rejected: list = []
        for record in migrate_tasks(raw):
            if not isinstance(record, dict):
                rejected.append(record)
                continue
            try:
                tasks.append(Task.from_dict(record))
            except (TypeError, ValueError, AttributeError) as exc:
                logger.warning("Setting aside unreadable task record %r: %s", record.get("id"), exc)
                rejected.append(record)
        if rejected:
            self._quarantine(rejected)
        logger.debug("Loaded %d tasks", len(tasks))
        return tasks

    def load_quarantined(self) -> list:
        kept = self._store.get(QUARANTINE_KEY, [])
        return kept if isinstance(kept, list) else [kept]

    def _quarantine(self, records: list) -> None:
        kept = self.load_quarantined()
        fresh = [r for r in records if r not in kept]
        if not fresh:
            return
        if self._store.set(QUARANTINE_KEY, kept + fresh):
            logger.warning("Set aside %d unreadable task record(s) under %s", len(fresh), QUARANTINE_KEY)
        else:
            logger.error("Could not set aside %d unreadable task record(s)", len(fresh))

    def save_tasks(self, tasks: list[Task]) -> bool:
        return self._store.set(TASKS_KEY, [t.to_dict() for t in tasks])

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def load_settings(self) -> NotificationSettings:
        raw = self._store.get(SETTINGS_KEY)
        if not isinstance(raw, dict):
            return NotificationSettings()
        try:
            return NotificationSettings.model_validate(raw)
        except ValidationError as exc:
            logger.error("Invalid stored notification settings, using defaults: %s", exc)
            return NotificationSettings()

    def save_settings(self, settings: NotificationSettings) -> bool:
        return self._store.set(SETTINGS_KEY, settings.to_dict())

    # ------------------------------------------------------------------
    # Notification log
    # ------------------------------------------------------------------

    def load_notifications(self) -> list[Notification]:
        raw = self._store.get(NOTIFICATIONS_KEY, [])
        if not isinstance(raw, list):
            return []
        notifications: list[Notification] = []
        for record in raw:
            try:
                notifications.append(Notification.from_dict(record))
            except (KeyError, TypeError, ValueError, AttributeError) as exc:
                logger.warning("Skipping malformed notification: %s", exc)
        return notifications

    def save_notifications(self, notifications: list[Notification]) -> bool:
        return self._store.set(NOTIFICATIONS_KEY, [n.to_dict() for n in notifications])

    # ------------------------------------------------------------------
    # Versioning
    # ------------------------------------------------------------------

    def check_and_migrate(self) -> bool:
        """Write the version marker on first run; backfill tasks on version change.

        Returns True if a migration was performed.
        """
        current = self._store.get(VERSION_KEY)
        if not current:
            self._store.set(VERSION_KEY, STORAGE_VERSION)
            return False
        if current == STORAGE_VERSION:
            return False

        logger.info("Migrating store from version %s to %s", current, STORAGE_VERSION)
        migrated = migrate_tasks(self._store.get(TASKS_KEY, []))
        self._store.set(TASKS_KEY, migrated)
        self._store.set(VERSION_KEY, STORAGE_VERSION)
        return True

    def create_backup(self) -> dict:
        """Snapshot of every timetable-* key plus the settings."""
        data = {
            key: self._store.get(key)
            for key in self._store.keys()
            if key.startswith(KEY_PREFIX) or key == SETTINGS_KEY
        }
        return {
            "version": STORAGE_VERSION,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "data": data,
        }

    def restore_backup(self, backup: dict) -> bool:
        if not isinstance(backup, dict) or not isinstance(backup.get("data"), dict):
            logger.error("Invalid backup format")
            return False
        ok = all(self._store.set(key, value) for key, value in backup["data"].items())
        if ok:
            logger.info("Backup from %s restored", backup.get("timestamp"))
        return ok
