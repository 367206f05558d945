"""Shared test fixtures and configuration.

Sets up environment variables before any src imports so src.config loads
deterministic values, and provides a temp-file store, a fixed clock and a
task factory.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "")
os.environ.setdefault("TELEGRAM_CHAT_ID", "")
os.environ.setdefault("TIMEZONE", "UTC")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from datetime import datetime, timezone

import pytest

# Preload the optional numpy extension so tests that patch sys.modules
# don't evict it and force a (failing) second load of its C extension.
try:
    import numpy  # noqa: F401
except ImportError:
    pass

# Monday 19 October 2026, 10:00 UTC
NOW = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_timetable.db")


@pytest.fixture
def kv_store(tmp_db_path):
    """Return a KeyValueStore backed by a temp file."""
    from src.data.db import KeyValueStore
    return KeyValueStore(db_path=tmp_db_path)


@pytest.fixture
def repository(kv_store):
    from src.data.repository import TimetableRepository
    return TimetableRepository(kv_store)


@pytest.fixture
def make_task():
    """Factory for Task records on Monday 09:00-10:00 unless overridden."""
    from src.data.models import Task

    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        fields = {
            "id": f"task-{counter['n']}",
            "title": f"Task {counter['n']}",
            "day": "Monday",
            "start_time": "09:00",
            "end_time": "10:00",
        }
        fields.update(overrides)
        return Task(**fields)

    return _make
