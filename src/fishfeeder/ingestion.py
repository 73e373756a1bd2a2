"""Parsing of raw store values into typed feeder fields.

Store values come from a device we do not control: missing subtrees,
``null`` leaves and numbers stored as floats are all seen in practice.
This module is the only place that interprets them.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from fishfeeder.models.state import FeederField

_logger = logging.getLogger(__name__)


def _as_number(raw: Any) -> float | None:
    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        value = float(raw)
    elif isinstance(raw, str):
        try:
            value = float(raw.strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def coerce_field(field: FeederField, raw: Any) -> int | float | None:
    """Coerce a subscription value, or ``None`` when it carries no usable value."""
    value = _as_number(raw)
    if value is None:
        if raw is not None:
            _logger.debug("Ignoring non-numeric %s value %r", field, raw)
        return None
    if field is FeederField.STOCK_REMAINING:
        return value
    if value < 0:
        _logger.debug("Clamping negative %s value %r", field, raw)
        return 0
    return int(value)


class FeederSnapshot(BaseModel):
    """Typed view of the feeder root tree read at start-up.

    Absent or unusable values fall back to zero.
    """

    model_config = ConfigDict(frozen=True)

    countdown_remaining: int = 0
    drops_today: int = 0
    stock_remaining: float = 0.0

    @model_validator(mode="before")
    @classmethod
    def _flatten_tree(cls, values: Any) -> Any:
        if values is None:
            return {}
        if not isinstance(values, dict):
            return values
        if "data" not in values and "status" not in values:
            return values
        data = values.get("data") if isinstance(values.get("data"), dict) else {}
        status = values.get("status") if isinstance(values.get("status"), dict) else {}
        return {
            "countdown_remaining": data.get("countdown_remaining"),
            "drops_today": status.get("drops_today"),
            "stock_remaining": status.get("stock_remaining"),
        }

    @field_validator("countdown_remaining", "drops_today", mode="before")
    @classmethod
    def _coerce_counter(cls, value: Any) -> int:
        number = _as_number(value)
        if number is None or number < 0:
            return 0
        return int(number)

    @field_validator("stock_remaining", mode="before")
    @classmethod
    def _coerce_stock(cls, value: Any) -> float:
        number = _as_number(value)
        return 0.0 if number is None else number

    @classmethod
    def from_tree(cls, tree: Any) -> FeederSnapshot:
        if not isinstance(tree, dict):
            return cls()
        return cls.model_validate(tree)
