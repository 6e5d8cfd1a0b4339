from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from ..errors import InvalidConfigError
from ..models import Tier


class Thresholds(BaseModel):
    """
    Lower bound of each tier. Tier i covers [bound_i, bound_{i+1}); direct
    covers [direct, 1.0].
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    direct: float = 0.7
    caveated: float = 0.5
    verify: float = 0.3
    archive_candidate: float = 0.0

    @model_validator(mode="after")
    def _check_partition(self) -> Thresholds:
        bounds = (self.archive_candidate, self.verify, self.caveated, self.direct)
        if any(math.isnan(b) for b in bounds):
            raise ValueError("thresholds must be numbers")
        if self.archive_candidate != 0.0:
            raise ValueError("archive_candidate must start at 0.0")
        if not (self.archive_candidate < self.verify < self.caveated < self.direct <= 1.0):
            raise ValueError(
                "thresholds must satisfy 0.0 < verify < caveated < direct <= 1.0, "
                f"got verify={self.verify}, caveated={self.caveated}, direct={self.direct}"
            )
        return self

    def bands(self) -> list[tuple[Tier, float, float]]:
        """(tier, lower, upper) from highest tier down; upper is exclusive except for direct."""
        return [
            (Tier.DIRECT, self.direct, 1.0),
            (Tier.CAVEATED, self.caveated, self.direct),
            (Tier.VERIFY, self.verify, self.caveated),
            (Tier.ARCHIVE_CANDIDATE, self.archive_candidate, self.verify),
        ]


DEFAULT_THRESHOLDS = Thresholds()


def load_thresholds(raw: Thresholds | Mapping[str, Any]) -> Thresholds:
    if isinstance(raw, Thresholds):
        return raw
    if not isinstance(raw, Mapping):
        raise InvalidConfigError(f"thresholds must be a mapping, got {type(raw).__name__}")
    try:
        return Thresholds.model_validate(dict(raw))
    except ValidationError as e:
        raise InvalidConfigError(f"invalid thresholds: {e}") from e


def classify(confidence: float, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> Tier:
    if math.isnan(confidence) or not 0.0 <= confidence <= 1.0:
        raise ValueError(f"confidence must be within [0, 1], got {confidence}")

    return next(tier for tier, lower, _ in thresholds.bands() if confidence >= lower)
