# decay_mem/__init__.py

from .errors import (
    ConcurrentUpdateError,
    DecayError,
    InvalidConfigError,
    InvalidTimeError,
    UnknownCategoryError,
)
from .memory import Memory
from .models import Assessment, DecayPolicy, MemoryCategory, MemoryRecord, Tier
from .temporal.classifier import Thresholds
from .temporal.engine import DecayEngine
from .temporal.policy import PolicyTable

__all__ = [
    "Assessment",
    "ConcurrentUpdateError",
    "DecayEngine",
    "DecayError",
    "DecayPolicy",
    "InvalidConfigError",
    "InvalidTimeError",
    "Memory",
    "MemoryCategory",
    "MemoryRecord",
    "PolicyTable",
    "Thresholds",
    "Tier",
    "UnknownCategoryError",
]
