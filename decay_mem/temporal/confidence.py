"""
Time-based confidence.

    adjusted_rate = decay_rate / (1 + 0.3 * reinforcement_count)
    confidence    = initial_confidence * e^(-adjusted_rate * hours_elapsed)

Confidence is derived on every read and never written back to the record.
"""

import math
from datetime import datetime

from ..errors import InvalidTimeError
from ..models import MemoryRecord, as_utc

# Each reinforcement adds 30% to the rate divisor.
REINFORCEMENT_SLOWDOWN = 0.3

SECONDS_PER_HOUR = 3600.0


def adjusted_rate(decay_rate: float, reinforcement_count: int) -> float:
    return decay_rate / (1.0 + REINFORCEMENT_SLOWDOWN * reinforcement_count)


def hours_elapsed(since: datetime, now: datetime) -> float:
    since = as_utc(since)
    now = as_utc(now)
    seconds = (now - since).total_seconds()
    if seconds < 0:
        raise InvalidTimeError(
            f"now ({now.isoformat()}) is before last reinforcement ({since.isoformat()})",
            earlier=now,
            later=since,
        )
    return seconds / SECONDS_PER_HOUR


def current_confidence(record: MemoryRecord, now: datetime) -> float:
    hours = hours_elapsed(record.last_reinforced, now)
    rate = adjusted_rate(record.decay_rate, record.reinforcement_count)
    confidence = record.initial_confidence * math.exp(-rate * hours)
    return min(1.0, max(0.0, confidence))
