from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MemoryCategory(str, Enum):
    FACT = "fact"
    PREFERENCE = "preference"
    GOAL = "goal"
    EVENT = "event"
    CONTEXT = "context"


class Tier(str, Enum):
    DIRECT = "direct"
    CAVEATED = "caveated"
    VERIFY = "verify"
    ARCHIVE_CANDIDATE = "archive_candidate"


def as_utc(dt: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DecayPolicy(BaseModel):
    model_config = ConfigDict(frozen=True)

    decay_rate: float = Field(gt=0.0, allow_inf_nan=False)   # per hour
    initial_confidence: float = Field(ge=0.0, le=1.0)


class MemoryRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    user_id: Optional[str] = None
    memory: str = ""
    category: MemoryCategory
    initial_confidence: float = Field(ge=0.0, le=1.0)
    decay_rate: float = Field(gt=0.0, allow_inf_nan=False)
    reinforcement_count: int = Field(default=0, ge=0)
    last_reinforced: datetime
    created_at: datetime
    status: str = "active"         # "active" | "archived" | "deleted"
    version: int = 0               # owned by the storage layer
    extra: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("last_reinforced", "created_at")
    @classmethod
    def _to_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class Assessment(BaseModel):
    memory_id: str
    confidence: float
    tier: Tier
