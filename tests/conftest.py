"""Shared fixtures for the decay_mem test suite.

- A fixed reference time so every confidence value is reproducible
- A record factory with per-test overrides
- A fresh SQLite-backed Memory facade per test
"""

from datetime import datetime, timezone

import pytest

from decay_mem.memory import Memory
from decay_mem.models import MemoryCategory, MemoryRecord
from decay_mem.temporal.engine import DecayEngine

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def make_record():
    """Factory for canonical records; keyword overrides win."""

    def _make(**overrides) -> MemoryRecord:
        fields = {
            "id": "mem-1",
            "user_id": "u1",
            "memory": "User lives in Lisbon",
            "category": MemoryCategory.FACT,
            "initial_confidence": 0.95,
            "decay_rate": 0.01,
            "reinforcement_count": 0,
            "last_reinforced": T0,
            "created_at": T0,
        }
        fields.update(overrides)
        return MemoryRecord(**fields)

    return _make


@pytest.fixture
def engine():
    return DecayEngine()


@pytest.fixture
def memory(tmp_path):
    """Memory facade over a throwaway SQLite file."""
    mem = Memory({"sqlite_path": str(tmp_path / "history.db")})
    yield mem
    mem.close()
