"""Tests for temporal/reinforcement.py - decay clock resets."""

from datetime import timedelta

import pytest

from decay_mem.errors import InvalidTimeError
from decay_mem.models import DecayPolicy
from decay_mem.temporal.confidence import current_confidence
from decay_mem.temporal.reinforcement import reinforce, reset_confidence


class TestReinforce:
    def test_moves_clock_and_counts(self, make_record, t0):
        record = make_record()
        later = t0 + timedelta(hours=10)

        updated = reinforce(record, later)

        assert updated.last_reinforced == later
        assert updated.reinforcement_count == 1
        assert updated.initial_confidence == record.initial_confidence
        assert updated.decay_rate == record.decay_rate
        assert updated.created_at == record.created_at
        assert updated.category == record.category

    def test_does_not_mutate_input(self, make_record, t0):
        record = make_record()
        reinforce(record, t0 + timedelta(hours=1))
        assert record.reinforcement_count == 0
        assert record.last_reinforced == t0

    def test_immediate_read_returns_initial(self, make_record, t0):
        later = t0 + timedelta(hours=300)
        updated = reinforce(make_record(reinforcement_count=4), later)
        assert current_confidence(updated, later) == updated.initial_confidence

    def test_repeated_reinforcement_accumulates(self, make_record, t0):
        record = make_record()
        for i in range(1, 4):
            record = reinforce(record, t0 + timedelta(hours=i))
        assert record.reinforcement_count == 3
        assert record.last_reinforced == t0 + timedelta(hours=3)

    def test_same_instant_is_allowed(self, make_record, t0):
        assert reinforce(make_record(), t0).reinforcement_count == 1

    def test_backwards_raises(self, make_record, t0):
        record = make_record(last_reinforced=t0 + timedelta(hours=5))
        with pytest.raises(InvalidTimeError):
            reinforce(record, t0)


class TestResetConfidence:
    """Full reset restores the policy's initial confidence."""

    def test_restores_policy_default(self, make_record, t0):
        record = make_record(initial_confidence=0.4, reinforcement_count=2)
        policy = DecayPolicy(decay_rate=0.01, initial_confidence=0.95)

        updated = reset_confidence(record, t0 + timedelta(hours=1), policy)

        assert updated.initial_confidence == 0.95
        assert updated.reinforcement_count == 3
        assert updated.decay_rate == record.decay_rate

    def test_clear_reinforcements_is_opt_in(self, make_record, t0):
        record = make_record(reinforcement_count=5)
        policy = DecayPolicy(decay_rate=0.01, initial_confidence=0.95)

        updated = reset_confidence(record, t0, policy, clear_reinforcements=True)

        assert updated.reinforcement_count == 0
        assert updated.last_reinforced == t0

    def test_backwards_raises(self, make_record, t0):
        record = make_record(last_reinforced=t0 + timedelta(hours=1))
        policy = DecayPolicy(decay_rate=0.01, initial_confidence=0.95)
        with pytest.raises(InvalidTimeError):
            reset_confidence(record, t0, policy)
