"""
Legacy record migration.

Records written before decay tracking (or by the older schema that stored a
``type`` label and a static ``confidence``) are brought into the canonical
MemoryRecord shape. The transform is pure and idempotent so it can run on
every load.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel

from ..errors import InvalidTimeError
from ..models import MemoryCategory, MemoryRecord, as_utc, utc_now
from .policy import PolicyTable

DECAY_FIELDS = (
    "category",
    "initial_confidence",
    "decay_rate",
    "reinforcement_count",
    "last_reinforced",
    "created_at",
)

# Labels used by the older ``type`` column.
LEGACY_TYPE_ALIASES = {
    "profile": "fact",
    "profile_fact": "fact",
    "preference": "preference",
    "episodic_event": "event",
    "temp_state": "context",
    "task_state": "goal",
}

_CATEGORY_VALUES = {c.value for c in MemoryCategory}


def _as_dict(legacy: Mapping[str, Any] | BaseModel) -> dict[str, Any]:
    if isinstance(legacy, BaseModel):
        data = legacy.model_dump()
    else:
        data = dict(legacy)
    # storage NULLs mean "missing"
    return {k: v for k, v in data.items() if v is not None}


def _category_value(value: Any) -> Any:
    return value.value if isinstance(value, MemoryCategory) else value


def needs_migration(legacy: Mapping[str, Any] | BaseModel) -> bool:
    if isinstance(legacy, MemoryRecord):
        return False
    data = _as_dict(legacy)
    if any(f not in data for f in DECAY_FIELDS):
        return True
    return _category_value(data["category"]) not in _CATEGORY_VALUES


def _parse_timestamp(value: Any, field: str) -> datetime:
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, str):
        # handle 2025-01-01T00:00:00Z and 2025-01-01T00:00:00
        try:
            return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            pass
    raise InvalidTimeError(f"cannot parse {field} timestamp {value!r}")


def migrate(
    legacy: Mapping[str, Any] | BaseModel,
    policy_table: PolicyTable,
    now: datetime | None = None,
) -> MemoryRecord:
    """
    Fill in whatever decay fields ``legacy`` lacks.

    - category: from ``category`` or the legacy ``type`` label; unknown
      labels become context (with a warning) and are kept in
      ``extra["legacy_category"]``; a valid category missing from the table
      keeps its category and borrows the context policy values
    - decay_rate / initial_confidence: policy defaults for the category
    - reinforcement_count: 0
    - created_at: ``now`` when absent
    - last_reinforced: created_at

    Fields already present are kept. A record that already has all of them
    comes back unchanged.
    """
    if isinstance(legacy, MemoryRecord):
        return legacy

    data = _as_dict(legacy)
    if not needs_migration(data):
        return MemoryRecord.model_validate(data)

    raw_category = _category_value(data.get("category", data.get("type")))
    label = LEGACY_TYPE_ALIASES.get(raw_category, raw_category)
    fallback_category, policy = policy_table.resolve(label)
    # a valid category survives even when only the fallback policy applies
    category = MemoryCategory(label) if label in _CATEGORY_VALUES else fallback_category

    extra = dict(data.get("extra") or {})
    if raw_category is not None and raw_category != category.value:
        extra["legacy_category"] = raw_category

    if "created_at" in data:
        created_at = _parse_timestamp(data["created_at"], "created_at")
    else:
        created_at = as_utc(now) if now is not None else utc_now()

    if "last_reinforced" in data:
        last_reinforced = _parse_timestamp(data["last_reinforced"], "last_reinforced")
    else:
        last_reinforced = created_at

    data.update(
        {
            "id": data.get("id") or str(uuid4()),
            "category": category,
            "initial_confidence": data.get("initial_confidence", policy.initial_confidence),
            "decay_rate": data.get("decay_rate", policy.decay_rate),
            "reinforcement_count": data.get("reinforcement_count", 0),
            "created_at": created_at,
            "last_reinforced": last_reinforced,
            "extra": extra,
        }
    )
    return MemoryRecord.model_validate(data)
