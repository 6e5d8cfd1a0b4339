# decay_mem/storage/sqlite_store.py

import json
import os
import sqlite3
import threading
from typing import Any

from ..models import MemoryRecord

# Columns added to tables created before decay tracking existed.
DECAY_COLUMNS = {
    "category": "TEXT",
    "initial_confidence": "REAL",
    "decay_rate": "REAL",
    "reinforcement_count": "INTEGER",
    "last_reinforced": "TEXT",
    "created_at": "TEXT",
    "status": "TEXT",
    "version": "INTEGER",
    "extra": "TEXT",
}


class SqliteStore:
    """
    SQLite-based store for memory records.

    Rows come back as plain dicts so legacy rows (NULL decay columns) can be
    migrated by the caller. Writes to an existing record go through
    compare_and_swap, which checks and bumps ``version`` in one statement.
    """

    def __init__(self, path: str = "~/.decay_mem/history.db") -> None:
        self.path = os.path.expanduser(path)
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._write_lock = threading.Lock()
        self._init_schema()

    def _init_schema(self) -> None:
        cur = self.conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS memories (
                id TEXT PRIMARY KEY,
                user_id TEXT,
                memory TEXT NOT NULL,
                category TEXT,
                initial_confidence REAL,
                decay_rate REAL,
                reinforcement_count INTEGER,
                last_reinforced TEXT,
                created_at TEXT,
                status TEXT,
                version INTEGER,
                extra TEXT
            );
            """
        )
        existing = {row["name"] for row in cur.execute("PRAGMA table_info(memories);")}
        for column, sql_type in DECAY_COLUMNS.items():
            if column not in existing:
                cur.execute(f"ALTER TABLE memories ADD COLUMN {column} {sql_type};")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_mem_user ON memories(user_id);")
        cur.execute("CREATE INDEX IF NOT EXISTS idx_mem_status ON memories(status);")
        self.conn.commit()

    @staticmethod
    def _row_to_dict(row: sqlite3.Row) -> dict[str, Any]:
        data = dict(row)
        if data.get("extra"):
            data["extra"] = json.loads(data["extra"])
        return data

    @staticmethod
    def _record_params(record: MemoryRecord) -> dict[str, Any]:
        return {
            "id": record.id,
            "user_id": record.user_id,
            "memory": record.memory,
            "category": record.category.value,
            "initial_confidence": record.initial_confidence,
            "decay_rate": record.decay_rate,
            "reinforcement_count": record.reinforcement_count,
            "last_reinforced": record.last_reinforced.isoformat(),
            "created_at": record.created_at.isoformat(),
            "status": record.status,
            "extra": json.dumps(record.extra or {}),
        }

    def insert(self, record: MemoryRecord) -> MemoryRecord:
        params = self._record_params(record)
        params["version"] = 1
        with self._write_lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                INSERT INTO memories (
                    id,
                    user_id,
                    memory,
                    category,
                    initial_confidence,
                    decay_rate,
                    reinforcement_count,
                    last_reinforced,
                    created_at,
                    status,
                    version,
                    extra
                ) VALUES (
                    :id, :user_id, :memory, :category, :initial_confidence, :decay_rate,
                    :reinforcement_count, :last_reinforced, :created_at, :status, :version, :extra
                )
                """,
                params,
            )
            self.conn.commit()
        return record.model_copy(update={"version": 1})

    def compare_and_swap(self, record: MemoryRecord, expected_version: int) -> MemoryRecord | None:
        """
        Write every field of ``record`` if the stored version still equals
        ``expected_version``. Returns the stored record (with its new
        version) or None when another writer got there first.
        """
        params = self._record_params(record)
        params["expected_version"] = expected_version
        params["new_version"] = expected_version + 1
        with self._write_lock:
            cur = self.conn.cursor()
            cur.execute(
                """
                UPDATE memories SET
                    user_id = :user_id,
                    memory = :memory,
                    category = :category,
                    initial_confidence = :initial_confidence,
                    decay_rate = :decay_rate,
                    reinforcement_count = :reinforcement_count,
                    last_reinforced = :last_reinforced,
                    created_at = :created_at,
                    status = :status,
                    extra = :extra,
                    version = :new_version
                WHERE id = :id AND COALESCE(version, 0) = :expected_version;
                """,
                params,
            )
            self.conn.commit()
            swapped = cur.rowcount == 1
        if not swapped:
            return None
        return record.model_copy(update={"version": expected_version + 1})

    def get_raw(self, mem_id: str) -> dict[str, Any] | None:
        cur = self.conn.cursor()
        cur.execute("SELECT * FROM memories WHERE id = ? LIMIT 1;", (mem_id,))
        row = cur.fetchone()
        if row is None:
            return None
        return self._row_to_dict(row)

    def update_status(self, mem_id: str, new_status: str) -> None:
        with self._write_lock:
            cur = self.conn.cursor()
            cur.execute(
                "UPDATE memories SET status = ?, version = COALESCE(version, 0) + 1 WHERE id = ?;",
                (new_status, mem_id),
            )
            self.conn.commit()

    def list_raw_by_user(self, user_id: str, status: str = "active") -> list[dict[str, Any]]:
        # legacy rows may predate the status column
        cur = self.conn.cursor()
        cur.execute(
            """
            SELECT * FROM memories
            WHERE user_id = ?
              AND COALESCE(status, 'active') = ?
            ORDER BY datetime(created_at) DESC;
            """,
            (user_id, status),
        )
        rows = cur.fetchall()
        return [self._row_to_dict(r) for r in rows]

    def list_raw_by_ids(self, ids: list[str]) -> list[dict[str, Any]]:
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        cur = self.conn.cursor()
        cur.execute(
            f"""
            SELECT * FROM memories
            WHERE id IN ({placeholders});
            """,
            ids,
        )
        rows = cur.fetchall()
        return [self._row_to_dict(r) for r in rows]

    def close(self) -> None:
        self.conn.close()
