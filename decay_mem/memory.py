# decay_mem/memory.py

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import builtins

from pydantic import ValidationError

from .errors import ConcurrentUpdateError, DecayError, InvalidTimeError
from .models import MemoryCategory, MemoryRecord, Tier, utc_now
from .storage.sqlite_store import SqliteStore
from .temporal.classifier import load_thresholds
from .temporal.engine import DecayEngine
from .temporal.migration import needs_migration
from .temporal.policy import PolicyTable, load_policy_table


def _merge_policies(overrides: Mapping[str, Any] | None, base: PolicyTable) -> dict[str, Any] | None:
    """Per-category overrides layered over ``base``."""
    if overrides is None:
        return None
    merged: dict[str, Any] = base.as_dict()
    for category, policy in overrides.items():
        key = category.value if isinstance(category, MemoryCategory) else category
        if isinstance(policy, Mapping) and key in merged:
            merged[key] = {**merged[key], **policy}
        else:
            merged[key] = policy
    return merged


class Memory:
    """
    Public facade over the decay engine and a SQLite store.

    - add() creates a record from category defaults and stores it
    - get() / list() / recall() load records, migrating legacy rows on the
      way, and attach the current confidence and tier
    - reinforce() / reset() apply engine updates through compare-and-swap
    - archive_candidates() only labels; archive() and delete() are explicit
      host decisions
    """

    def __init__(self, config: dict[str, Any] | None = None) -> None:
        config = config or {}

        sqlite_path = config.get("sqlite_path", "~/.decay_mem/history.db")
        self.max_cas_retries = int(config.get("max_cas_retries", 3))

        self.metadata_store = SqliteStore(path=sqlite_path)
        self.engine = DecayEngine(
            policy_table=_merge_policies(config.get("decay_policies"), PolicyTable.default()),
            thresholds=config.get("thresholds"),
        )

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    def configure(
        self,
        decay_policies: Mapping[str, Any] | None = None,
        thresholds: Mapping[str, Any] | None = None,
    ) -> None:
        """
        Swap decay policies and/or thresholds at runtime. Policy overrides
        layer over the current table. Both are validated before anything
        changes; an invalid threshold set leaves the policy table untouched too.
        """
        new_table = (
            load_policy_table(_merge_policies(decay_policies, self.engine.policy_table))
            if decay_policies is not None
            else None
        )
        new_thresholds = load_thresholds(thresholds) if thresholds is not None else None

        if new_table is not None:
            self.engine.update_policy_table(new_table)
            print("[Memory.configure] Decay policy table replaced")
        if new_thresholds is not None:
            self.engine.update_thresholds(new_thresholds)
            print("[Memory.configure] Tier thresholds replaced")

    # ------------------------------------------------------------------ #
    # ADD
    # ------------------------------------------------------------------ #

    def add(
        self,
        memory: str,
        user_id: str,
        category: MemoryCategory | str,
        initial_confidence: float | None = None,
        decay_rate: float | None = None,
        metadata: dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        record = self.engine.new_record(
            category=category,
            memory=memory,
            user_id=user_id,
            now=now,
            initial_confidence=initial_confidence,
            decay_rate=decay_rate,
            extra=metadata,
        )
        stored = self.metadata_store.insert(record)
        print(f"[Memory.add] Stored {stored.category.value} memory {stored.id} for user={user_id}")
        return self._serialize_memory(stored)

    # ------------------------------------------------------------------ #
    # READ
    # ------------------------------------------------------------------ #

    def get(self, memory_id: str, now: datetime | None = None) -> dict[str, Any] | None:
        now = now or utc_now()
        record = self._load(memory_id, now)
        if record is None:
            return None
        return self._describe(record, now)

    def list(
        self,
        user_id: str,
        status: str = "active",
        now: datetime | None = None,
    ) -> dict[str, Any]:
        now = now or utc_now()
        records, errors = self._load_user(user_id, status, now)
        return {"results": [self._serialize_memory(r) for r in records], "errors": errors}

    def recall(
        self,
        user_id: str,
        now: datetime | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """
        Every active memory of the user with its confidence and tier,
        most confident first. Archive candidates are included; dropping
        them is the caller's call. Rows that cannot be loaded are reported
        under "errors" instead of failing the whole call.
        """
        now = now or utc_now()
        records, errors = self._load_user(user_id, "active", now)
        described = [self._describe(r, now) for r in records]
        described.sort(key=lambda d: d["confidence"], reverse=True)
        if limit is not None:
            described = described[:limit]
        return {"results": described, "errors": errors}

    def archive_candidates(self, user_id: str, now: datetime | None = None) -> builtins.list[str]:
        results = self.recall(user_id, now=now)["results"]
        return [d["memory"]["id"] for d in results if d["tier"] == Tier.ARCHIVE_CANDIDATE.value]

    # ------------------------------------------------------------------ #
    # UPDATE
    # ------------------------------------------------------------------ #

    def reinforce(self, memory_id: str, now: datetime | None = None) -> dict[str, Any] | None:
        now = now or utc_now()
        record = self._update(memory_id, now, lambda r: self.engine.reinforce(r, now))
        if record is None:
            return None
        print(f"[Memory.reinforce] {memory_id} reinforced (count={record.reinforcement_count})")
        return self._describe(record, now)

    def reset(
        self,
        memory_id: str,
        now: datetime | None = None,
        clear_reinforcements: bool = False,
    ) -> dict[str, Any] | None:
        now = now or utc_now()
        record = self._update(
            memory_id,
            now,
            lambda r: self.engine.reset_confidence(r, now, clear_reinforcements=clear_reinforcements),
        )
        if record is None:
            return None
        print(f"[Memory.reset] {memory_id} reset to confidence {record.initial_confidence}")
        return self._describe(record, now)

    def archive(self, memory_id: str) -> bool:
        if self.metadata_store.get_raw(memory_id) is None:
            return False
        self.metadata_store.update_status(memory_id, "archived")
        return True

    def delete(self, memory_id: str) -> None:
        """Soft-delete: the row stays with status='deleted'."""
        if self.metadata_store.get_raw(memory_id) is None:
            return
        self.metadata_store.update_status(memory_id, "deleted")

    def close(self) -> None:
        self.metadata_store.close()

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _load(self, memory_id: str, now: datetime) -> MemoryRecord | None:
        raw = self.metadata_store.get_raw(memory_id)
        if raw is None:
            return None
        return self._from_row(raw, now)

    def _load_user(
        self, user_id: str, status: str, now: datetime
    ) -> tuple[builtins.list[MemoryRecord], builtins.list[dict[str, Any]]]:
        """One unreadable row is skipped and reported; the rest still load."""
        records: builtins.list[MemoryRecord] = []
        errors: builtins.list[dict[str, Any]] = []
        for raw in self.metadata_store.list_raw_by_user(user_id, status=status):
            try:
                records.append(self._from_row(raw, now))
            except (DecayError, ValidationError) as e:
                print(f"[Memory._load_user] Skipping memory {raw.get('id')}: {e}")
                errors.append({"id": raw.get("id"), "error": str(e)})
        return records, errors

    def _from_row(self, raw: dict[str, Any], now: datetime) -> MemoryRecord:
        """
        Migrate on every load. Migrated legacy rows are written back; if a
        concurrent writer beat us to it, the fresh row is used instead.
        """
        if not needs_migration(raw):
            return self.engine.migrate(raw)

        record = self.engine.migrate(raw, now=now)
        stored = self.metadata_store.compare_and_swap(record, expected_version=record.version)
        if stored is not None:
            print(f"[Memory._from_row] Migrated legacy memory {record.id} as {record.category.value}")
            return stored

        print(f"[Memory._from_row] Legacy memory {record.id} changed during migration, reloading")
        fresh = self.metadata_store.get_raw(record.id)
        if fresh is None:
            return record
        return self.engine.migrate(fresh, now=now)

    def _update(
        self,
        memory_id: str,
        now: datetime,
        apply: Callable[[MemoryRecord], MemoryRecord],
    ) -> MemoryRecord | None:
        """Load, apply, compare-and-swap; retry on version conflicts."""
        for attempt in range(1, self.max_cas_retries + 1):
            current = self._load(memory_id, now)
            if current is None:
                return None
            stored = self.metadata_store.compare_and_swap(apply(current), expected_version=current.version)
            if stored is not None:
                return stored
            print(f"[Memory._update] Version conflict on {memory_id} (attempt {attempt}/{self.max_cas_retries})")
        raise ConcurrentUpdateError(memory_id, self.max_cas_retries)

    def _describe(self, record: MemoryRecord, now: datetime) -> dict[str, Any]:
        clock_skew = False
        try:
            assessment = self.engine.assess(record, now)
        except InvalidTimeError as e:
            # Clamp elapsed time to zero, but say so.
            print(f"[Memory._describe] Clock skew on {record.id}: {e}")
            assessment = self.engine.assess(record, record.last_reinforced)
            clock_skew = True

        return {
            "memory": self._serialize_memory(record),
            "confidence": assessment.confidence,
            "tier": assessment.tier.value,
            "clock_skew": clock_skew,
        }

    @staticmethod
    def _serialize_memory(record: MemoryRecord) -> dict[str, Any]:
        return record.model_dump(mode="json")
