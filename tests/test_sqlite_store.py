"""Tests for storage/sqlite_store.py - persistence and compare-and-swap."""

import sqlite3
from datetime import timedelta

import pytest

from decay_mem.storage.sqlite_store import SqliteStore


@pytest.fixture
def store(tmp_path):
    s = SqliteStore(path=str(tmp_path / "store.db"))
    yield s
    s.close()


class TestInsertAndRead:
    def test_insert_sets_version(self, store, make_record):
        stored = store.insert(make_record())
        assert stored.version == 1
        assert store.get_raw("mem-1")["version"] == 1

    def test_raw_row_has_decay_fields(self, store, make_record, t0):
        store.insert(make_record(extra={"source": "chat"}))
        raw = store.get_raw("mem-1")
        assert raw["category"] == "fact"
        assert raw["decay_rate"] == 0.01
        assert raw["reinforcement_count"] == 0
        assert raw["extra"] == {"source": "chat"}

    def test_get_missing(self, store):
        assert store.get_raw("nope") is None

    def test_list_by_user_and_status(self, store, make_record, t0):
        store.insert(make_record(id="a", created_at=t0, last_reinforced=t0))
        store.insert(make_record(id="b", created_at=t0 + timedelta(hours=1), last_reinforced=t0 + timedelta(hours=1)))
        store.insert(make_record(id="c", user_id="someone-else"))
        store.update_status("a", "archived")

        assert [r["id"] for r in store.list_raw_by_user("u1")] == ["b"]
        assert [r["id"] for r in store.list_raw_by_user("u1", status="archived")] == ["a"]

    def test_list_by_ids(self, store, make_record):
        store.insert(make_record(id="a"))
        store.insert(make_record(id="b"))
        assert sorted(r["id"] for r in store.list_raw_by_ids(["a", "b", "zzz"])) == ["a", "b"]
        assert store.list_raw_by_ids([]) == []


class TestCompareAndSwap:
    def test_swap_with_current_version(self, store, make_record, t0):
        stored = store.insert(make_record())
        updated = stored.model_copy(update={"reinforcement_count": 1, "last_reinforced": t0 + timedelta(hours=1)})

        result = store.compare_and_swap(updated, expected_version=stored.version)

        assert result is not None
        assert result.version == 2
        raw = store.get_raw("mem-1")
        assert raw["reinforcement_count"] == 1
        assert raw["version"] == 2

    def test_stale_version_is_rejected(self, store, make_record):
        stored = store.insert(make_record())
        store.compare_and_swap(stored.model_copy(update={"reinforcement_count": 1}), stored.version)

        lost = store.compare_and_swap(stored.model_copy(update={"reinforcement_count": 7}), stored.version)

        assert lost is None
        assert store.get_raw("mem-1")["reinforcement_count"] == 1

    def test_status_change_bumps_version(self, store, make_record):
        stored = store.insert(make_record())
        store.update_status(stored.id, "archived")
        assert store.compare_and_swap(stored, stored.version) is None


class TestLegacySchema:
    """A table from the older schema gains the decay columns on open."""

    def test_adds_missing_columns(self, tmp_path):
        path = tmp_path / "legacy.db"
        conn = sqlite3.connect(path)
        conn.execute(
            """
            CREATE TABLE memories (
                id TEXT PRIMARY KEY,
                user_id TEXT NOT NULL,
                memory TEXT NOT NULL,
                type TEXT,
                status TEXT,
                created_at TEXT,
                confidence REAL,
                extra TEXT
            );
            """
        )
        conn.execute(
            "INSERT INTO memories VALUES ('old', 'u1', 'Lives in Pune', 'profile_fact', 'active', "
            "'2025-01-01T00:00:00Z', 0.9, '{}');"
        )
        conn.commit()
        conn.close()

        store = SqliteStore(path=str(path))
        raw = store.get_raw("old")
        store.close()

        assert raw["type"] == "profile_fact"
        assert raw["category"] is None
        assert raw["decay_rate"] is None
        assert raw["version"] is None
