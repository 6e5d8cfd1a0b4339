from datetime import datetime

from ..errors import InvalidTimeError
from ..models import DecayPolicy, MemoryRecord, as_utc


def _check_forward(record: MemoryRecord, now: datetime) -> datetime:
    now = as_utc(now)
    if now < record.last_reinforced:
        raise InvalidTimeError(
            f"cannot reinforce memory {record.id} at {now.isoformat()}, "
            f"it was last reinforced at {record.last_reinforced.isoformat()}",
            earlier=now,
            later=record.last_reinforced,
        )
    return now


def reinforce(record: MemoryRecord, now: datetime) -> MemoryRecord:
    """
    Restart the decay clock and count the event.

    initial_confidence and decay_rate are left alone: reinforcement slows
    future decay through the count, it never lifts confidence above the
    record's own ceiling.
    """
    now = _check_forward(record, now)
    return record.model_copy(
        update={
            "last_reinforced": now,
            "reinforcement_count": record.reinforcement_count + 1,
        }
    )


def reset_confidence(
    record: MemoryRecord,
    now: datetime,
    policy: DecayPolicy,
    clear_reinforcements: bool = False,
) -> MemoryRecord:
    """
    Full reset for an explicit re-confirmation: reinforce and restore the
    category's default initial confidence.

    The reinforcement count only goes back to zero when
    ``clear_reinforcements`` is set.
    """
    reinforced = reinforce(record, now)
    updates: dict = {"initial_confidence": policy.initial_confidence}
    if clear_reinforcements:
        updates["reinforcement_count"] = 0
    return reinforced.model_copy(update=updates)
