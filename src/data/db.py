"""
Timetable — Key-Value Store.

The persistence contract is deliberately small: get(key) -> value | None and
set(key, value) -> bool. Values are JSON documents kept in a single SQLite
table, so the rest of the engine never sees SQL.

Read failures degrade to the caller's default; write failures are logged and
reported as False. Running out of space (the configured quota, or SQLite's
own "database or disk is full") triggers one cleanup pass and one retry.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

TEMP_PREFIX = "temp-"
OLD_SUFFIX = "-old"


class StorageQuotaExceeded(Exception):
    """Raised internally when a write would exceed the store's quota."""


class KeyValueStore:
    """SQLite-backed JSON key-value store."""

    def __init__(self, db_path: str | None = None, quota_bytes: int | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH
            quota_bytes = quota_bytes or settings.STORAGE_QUOTA_BYTES

        self._db_path = db_path
        self._quota_bytes = quota_bytes
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the kv table if it doesn't exist."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key        TEXT PRIMARY KEY,
                    value      TEXT NOT NULL,
                    updated_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                )
            """)
        logger.debug("KV table initialized at %s", self._db_path)

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """Return the decoded value for key, or default if missing/unreadable."""
        try:
            with self._connect() as conn:
                row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            logger.error("Error reading from store (%s): %s", key, exc)
            return default

        if row is None:
            return default
        try:
            return json.loads(row["value"])
        except (TypeError, ValueError) as exc:
            logger.error("Malformed value in store (%s): %s", key, exc)
            return default

    def set(self, key: str, value: Any) -> bool:
        """Store value under key. Returns False if the write failed."""
        try:
            payload = json.dumps(value)
        except (TypeError, ValueError) as exc:
            logger.error("Value for %s is not JSON-serialisable: %s", key, exc)
            return False

        try:
            self._write(key, payload)
            return True
        except StorageQuotaExceeded:
            logger.error("Store quota exceeded. Attempting cleanup...")
        except sqlite3.OperationalError as exc:
            if "full" not in str(exc).lower():
                logger.error("Error writing to store (%s): %s", key, exc)
                return False
            logger.error("Store is full. Attempting cleanup...")
        except sqlite3.Error as exc:
            logger.error("Error writing to store (%s): %s", key, exc)
            return False

        self.cleanup_old_data()
        try:
            self._write(key, payload)
            return True
        except (StorageQuotaExceeded, sqlite3.Error) as exc:
            logger.error("Failed to save %s after cleanup: %s", key, exc)
            return False

    # ------------------------------------------------------------------
    # Housekeeping
    # ------------------------------------------------------------------

    def remove(self, key: str) -> bool:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM kv WHERE key = ?", (key,))
            return True
        except sqlite3.Error as exc:
            logger.error("Error removing from store (%s): %s", key, exc)
            return False

    def keys(self) -> list[str]:
        try:
            with self._connect() as conn:
                rows = conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        except sqlite3.Error as exc:
            logger.error("Error listing store keys: %s", exc)
            return []
        return [r["key"] for r in rows]

    def clear(self) -> bool:
        try:
            with self._connect() as conn:
                conn.execute("DELETE FROM kv")
            return True
        except sqlite3.Error as exc:
            logger.error("Error clearing store: %s", exc)
            return False

    def size_bytes(self) -> int:
        """Approximate payload size (keys + values)."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) AS total FROM kv"
                ).fetchone()
        except sqlite3.Error as exc:
            logger.error("Error calculating store size: %s", exc)
            return 0
        return int(row["total"])

    def cleanup_old_data(self) -> int:
        """Drop temp-* and *-old keys. Returns how many were removed."""
        removed = 0
        for key in self.keys():
            if key.startswith(TEMP_PREFIX) or key.endswith(OLD_SUFFIX):
                if self.remove(key):
                    removed += 1
        logger.info("Cleaned up %d old storage items", removed)
        return removed

    def _write(self, key: str, payload: str) -> None:
        with self._connect() as conn:
            if self._quota_bytes is not None:
                row = conn.execute(
                    "SELECT COALESCE(SUM(LENGTH(key) + LENGTH(value)), 0) AS total "
                    "FROM kv WHERE key != ?",
                    (key,),
                ).fetchone()
                if int(row["total"]) + len(key) + len(payload) > self._quota_bytes:
                    raise StorageQuotaExceeded(key)
            conn.execute(
                """
                INSERT INTO kv (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value,
                                               updated_at = CURRENT_TIMESTAMP
                """,
                (key, payload),
            )
