"""Tests for src.data.db — KeyValueStore (SQLite-backed JSON values)."""

import sqlite3
from unittest.mock import patch

import pytest

from src.data.db import KeyValueStore


class TestGetSet:
    def test_roundtrip_json(self, kv_store):
        value = {"tasks": [{"id": "a", "done": False}], "count": 2}
        assert kv_store.set("timetable-tasks", value) is True
        assert kv_store.get("timetable-tasks") == value

    def test_missing_returns_default(self, kv_store):
        assert kv_store.get("nope") is None
        assert kv_store.get("nope", []) == []

    def test_overwrite(self, kv_store):
        kv_store.set("k", 1)
        kv_store.set("k", 2)
        assert kv_store.get("k") == 2
        assert kv_store.keys() == ["k"]

    def test_malformed_value_returns_default(self, kv_store, tmp_db_path):
        with sqlite3.connect(tmp_db_path) as conn:
            conn.execute("INSERT INTO kv (key, value) VALUES (?, ?)", ("bad", "{not json"))
        assert kv_store.get("bad", "fallback") == "fallback"

    def test_unserialisable_value_is_rejected(self, kv_store):
        assert kv_store.set("k", {1, 2}) is False
        assert kv_store.get("k") is None

    def test_persists_across_instances(self, tmp_db_path):
        KeyValueStore(db_path=tmp_db_path).set("k", "v")
        assert KeyValueStore(db_path=tmp_db_path).get("k") == "v"


class TestHousekeeping:
    def test_remove_and_clear(self, kv_store):
        kv_store.set("a", 1)
        kv_store.set("b", 2)
        assert kv_store.remove("a") is True
        assert kv_store.keys() == ["b"]
        assert kv_store.clear() is True
        assert kv_store.keys() == []

    def test_size_bytes(self, kv_store):
        assert kv_store.size_bytes() == 0
        kv_store.set("ab", "xyz")
        # key (2) + '"xyz"' (5)
        assert kv_store.size_bytes() == 7

    def test_cleanup_old_data(self, kv_store):
        kv_store.set("temp-draft", 1)
        kv_store.set("timetable-tasks-old", 2)
        kv_store.set("timetable-tasks", 3)
        assert kv_store.cleanup_old_data() == 2
        assert kv_store.keys() == ["timetable-tasks"]


class TestQuota:
    def test_cleanup_then_retry_succeeds(self, tmp_db_path):
        store = KeyValueStore(db_path=tmp_db_path, quota_bytes=200)
        assert store.set("temp-cache", "x" * 150) is True

        assert store.set("timetable-tasks", "y" * 50) is True

        assert store.get("temp-cache") is None
        assert store.get("timetable-tasks") == "y" * 50

    def test_still_too_big_after_cleanup(self, tmp_db_path):
        store = KeyValueStore(db_path=tmp_db_path, quota_bytes=200)
        assert store.set("big", "z" * 300) is False
        assert store.get("big") is None

    def test_replacing_a_key_does_not_count_old_value(self, tmp_db_path):
        store = KeyValueStore(db_path=tmp_db_path, quota_bytes=200)
        assert store.set("k", "a" * 150) is True
        assert store.set("k", "b" * 150) is True

    def test_disk_full_triggers_cleanup(self, kv_store):
        full = sqlite3.OperationalError("database or disk is full")
        with patch.object(kv_store, "_write", side_effect=[full, None]) as write, \
             patch.object(kv_store, "cleanup_old_data") as cleanup:
            assert kv_store.set("k", "v") is True
        cleanup.assert_called_once()
        assert write.call_count == 2

    def test_other_operational_error_is_not_retried(self, kv_store):
        locked = sqlite3.OperationalError("database is locked")
        with patch.object(kv_store, "_write", side_effect=locked) as write, \
             patch.object(kv_store, "cleanup_old_data") as cleanup:
            assert kv_store.set("k", "v") is False
        cleanup.assert_not_called()
        assert write.call_count == 1


class TestDefaultPath:
    def test_uses_settings_path(self, tmp_path, monkeypatch):
        from src.config import settings

        path = str(tmp_path / "nested" / "store.db")
        monkeypatch.setattr(settings, "DATABASE_PATH", path)
        store = KeyValueStore()
        store.set("k", 1)
        assert KeyValueStore(db_path=path).get("k") == 1
