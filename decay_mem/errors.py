from datetime import datetime
from typing import Optional


class DecayError(Exception):
    """Base class for every error raised by decay_mem."""


class InvalidTimeError(DecayError, ValueError):
    """A time-sensitive operation was handed timestamps that run backwards."""

    def __init__(
        self,
        message: str,
        earlier: Optional[datetime] = None,
        later: Optional[datetime] = None,
    ) -> None:
        super().__init__(message)
        self.earlier = earlier
        self.later = later


class InvalidConfigError(DecayError, ValueError):
    """A policy table or threshold update failed validation."""


class UnknownCategoryError(DecayError, UserWarning):
    """
    Category missing from the policy table.

    Raised when no fallback is configured. When the engine falls back to the
    ``context`` policy it issues this class through ``warnings.warn`` instead,
    so callers can escalate it with a warnings filter.
    """

    def __init__(self, category: object, fallback: Optional[str] = None) -> None:
        if fallback:
            message = f"unknown memory category {category!r}, using {fallback!r} policy"
        else:
            message = f"unknown memory category {category!r} and no fallback policy configured"
        super().__init__(message)
        self.category = category
        self.fallback = fallback


class ConcurrentUpdateError(DecayError):
    """Every compare-and-swap attempt on a record lost to a concurrent writer."""

    def __init__(self, memory_id: str, attempts: int) -> None:
        super().__init__(f"memory {memory_id} changed concurrently {attempts} times; giving up")
        self.memory_id = memory_id
        self.attempts = attempts
