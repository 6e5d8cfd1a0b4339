# decay_mem/temporal/policy.py

from __future__ import annotations

import warnings
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from ..errors import InvalidConfigError, UnknownCategoryError
from ..models import DecayPolicy, MemoryCategory

# Fastest decaying category, used when a record's category has no policy.
FALLBACK_CATEGORY = MemoryCategory.CONTEXT

DEFAULT_POLICIES: Mapping[MemoryCategory, DecayPolicy] = MappingProxyType(
    {
        MemoryCategory.FACT: DecayPolicy(decay_rate=0.01, initial_confidence=0.95),
        MemoryCategory.PREFERENCE: DecayPolicy(decay_rate=0.05, initial_confidence=0.90),
        MemoryCategory.GOAL: DecayPolicy(decay_rate=0.15, initial_confidence=0.85),
        MemoryCategory.EVENT: DecayPolicy(decay_rate=0.25, initial_confidence=0.80),
        MemoryCategory.CONTEXT: DecayPolicy(decay_rate=0.60, initial_confidence=0.80),
    }
)


class PolicyTable(BaseModel):
    """
    Immutable snapshot of category -> DecayPolicy.

    Never edited in place: ``policies`` is a read-only mapping, and a
    configuration change builds a new table that the engine swaps in.
    """

    model_config = ConfigDict(frozen=True)

    policies: Dict[MemoryCategory, DecayPolicy]

    @field_validator("policies")
    @classmethod
    def _read_only(cls, value: dict[MemoryCategory, DecayPolicy]) -> Mapping[MemoryCategory, DecayPolicy]:
        if not value:
            raise ValueError("policy table must define at least one category")
        return MappingProxyType(dict(value))

    @classmethod
    def default(cls) -> PolicyTable:
        return cls(policies=dict(DEFAULT_POLICIES))

    def __contains__(self, category: object) -> bool:
        return category in self.policies

    def lookup(self, category: MemoryCategory | str) -> DecayPolicy:
        try:
            return self.policies[MemoryCategory(category)]
        except (KeyError, ValueError):
            raise UnknownCategoryError(category) from None

    def resolve(self, category: MemoryCategory | str | None) -> tuple[MemoryCategory, DecayPolicy]:
        """
        Return the category and policy to use for a record.

        Unknown or missing categories fall back to the context policy and
        issue an UnknownCategoryError warning. Raises UnknownCategoryError
        when the fallback itself is absent.
        """
        try:
            resolved = MemoryCategory(category)
        except ValueError:
            resolved = None

        if resolved is not None and resolved in self.policies:
            return resolved, self.policies[resolved]

        if FALLBACK_CATEGORY not in self.policies:
            raise UnknownCategoryError(category)

        warnings.warn(UnknownCategoryError(category, FALLBACK_CATEGORY.value), stacklevel=3)
        return FALLBACK_CATEGORY, self.policies[FALLBACK_CATEGORY]

    def as_dict(self) -> dict[str, dict[str, float]]:
        return {cat.value: policy.model_dump() for cat, policy in self.policies.items()}


def load_policy_table(raw: PolicyTable | Mapping[Any, Any]) -> PolicyTable:
    """
    Build a validated PolicyTable from a table or a plain mapping such as
    ``{"fact": {"decay_rate": 0.01, "initial_confidence": 0.95}}``.
    """
    if isinstance(raw, PolicyTable):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidConfigError(f"policy table must be a mapping, got {type(raw).__name__}")
    try:
        return PolicyTable(policies=dict(raw))
    except ValidationError as e:
        raise InvalidConfigError(f"invalid policy table: {e}") from e
