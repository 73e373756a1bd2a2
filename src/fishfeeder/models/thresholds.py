"""Stock sensor calibration."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

from fishfeeder._constants import (
    DEFAULT_CAPACITY_KG,
    DEFAULT_EMPTY_THRESHOLD,
    DEFAULT_FULL_THRESHOLD,
    DEFAULT_LOW_THRESHOLD,
    DEFAULT_MIN_FEED_STOCK,
)


class ThresholdConfig(BaseModel):
    """Immutable calibration for raw stock readings.

    The sensor reports distance to the food surface, so a *larger*
    reading means *less* food.  Thresholds must therefore be ordered
    ``full_threshold < low_threshold < empty_threshold``.

    Parameters
    ----------
    capacity_kg : float
        Nominal container capacity, used for display only.
    empty_threshold : float
        Readings at or above this value mean the container is empty.
    full_threshold : float
        Readings at or below this value mean the container is full.
    low_threshold : float
        Readings at or below this value (and above full) are "getting low".
    min_feed_stock : float
        Safety floor: a manual feed is refused at or below this reading.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    capacity_kg: float = Field(default=DEFAULT_CAPACITY_KG, gt=0)
    empty_threshold: float = DEFAULT_EMPTY_THRESHOLD
    full_threshold: float = DEFAULT_FULL_THRESHOLD
    low_threshold: float = DEFAULT_LOW_THRESHOLD
    min_feed_stock: float = Field(default=DEFAULT_MIN_FEED_STOCK, ge=0)

    @model_validator(mode="after")
    def _check_ordering(self) -> ThresholdConfig:
        if not self.full_threshold < self.low_threshold < self.empty_threshold:
            raise ValueError(
                "thresholds must satisfy full < low < empty, got "
                f"full={self.full_threshold} low={self.low_threshold} empty={self.empty_threshold}"
            )
        return self

    @property
    def span(self) -> float:
        return self.empty_threshold - self.full_threshold
