# decay_mem/temporal/engine.py

from __future__ import annotations

import threading
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from ..models import Assessment, MemoryCategory, MemoryRecord, Tier, as_utc, utc_now
from . import confidence as _confidence
from . import reinforcement as _reinforcement
from .classifier import DEFAULT_THRESHOLDS, Thresholds, classify, load_thresholds
from .migration import migrate
from .policy import PolicyTable, load_policy_table


class DecayEngine:
    """
    Responsible for:
    - Creating records with category defaults (or explicit overrides)
    - Confidence on read, reinforcement, full reset
    - Tier classification
    - Migrating legacy records on load

    The policy table and thresholds are the only mutable state. Each is an
    immutable snapshot; updates validate a new snapshot and replace the
    reference, so a lookup sees either the old or the new one in full.
    Records are never stored here: operations take a record and return a
    new one.
    """

    def __init__(
        self,
        policy_table: PolicyTable | Mapping[Any, Any] | None = None,
        thresholds: Thresholds | Mapping[str, Any] | None = None,
    ) -> None:
        self._swap_lock = threading.Lock()
        self._policy_table = (
            load_policy_table(policy_table) if policy_table is not None else PolicyTable.default()
        )
        self._thresholds = load_thresholds(thresholds) if thresholds is not None else DEFAULT_THRESHOLDS

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    @property
    def policy_table(self) -> PolicyTable:
        return self._policy_table

    @property
    def thresholds(self) -> Thresholds:
        return self._thresholds

    def update_policy_table(self, new_table: PolicyTable | Mapping[Any, Any]) -> None:
        table = load_policy_table(new_table)
        with self._swap_lock:
            self._policy_table = table

    def update_thresholds(self, new_thresholds: Thresholds | Mapping[str, Any]) -> None:
        thresholds = load_thresholds(new_thresholds)
        with self._swap_lock:
            self._thresholds = thresholds

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def new_record(
        self,
        category: MemoryCategory | str,
        memory: str = "",
        user_id: str | None = None,
        now: datetime | None = None,
        initial_confidence: float | None = None,
        decay_rate: float | None = None,
        extra: dict[str, Any] | None = None,
    ) -> MemoryRecord:
        policy = self._policy_table.lookup(category)
        created_at = as_utc(now) if now is not None else utc_now()
        return MemoryRecord(
            user_id=user_id,
            memory=memory,
            category=MemoryCategory(category),
            initial_confidence=(
                initial_confidence if initial_confidence is not None else policy.initial_confidence
            ),
            decay_rate=decay_rate if decay_rate is not None else policy.decay_rate,
            reinforcement_count=0,
            last_reinforced=created_at,
            created_at=created_at,
            extra=extra or {},
        )

    def compute_confidence(self, record: MemoryRecord, now: datetime) -> float:
        return _confidence.current_confidence(record, now)

    def reinforce(self, record: MemoryRecord, now: datetime) -> MemoryRecord:
        return _reinforcement.reinforce(record, now)

    def reset_confidence(
        self,
        record: MemoryRecord,
        now: datetime,
        clear_reinforcements: bool = False,
    ) -> MemoryRecord:
        _, policy = self._policy_table.resolve(record.category)
        return _reinforcement.reset_confidence(
            record,
            now,
            policy,
            clear_reinforcements=clear_reinforcements,
        )

    def classify(self, confidence: float) -> Tier:
        return classify(confidence, self._thresholds)

    def assess(self, record: MemoryRecord, now: datetime) -> Assessment:
        """The (tier, confidence) pair handed to the agent-facing layer."""
        thresholds = self._thresholds
        value = _confidence.current_confidence(record, now)
        return Assessment(
            memory_id=record.id,
            confidence=value,
            tier=classify(value, thresholds),
        )

    def migrate(
        self,
        record: Mapping[str, Any] | BaseModel,
        now: datetime | None = None,
    ) -> MemoryRecord:
        return migrate(record, self._policy_table, now=now)
