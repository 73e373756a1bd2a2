"""Canonical feeder state owned by the control engine."""

from __future__ import annotations

import enum
from datetime import date

from pydantic import BaseModel, ConfigDict, Field


class EngineState(enum.StrEnum):
    INITIALIZING = "initializing"
    LIVE = "live"
    STOPPED = "stopped"


class FeederField(enum.StrEnum):
    """Fields kept live through per-path subscriptions."""

    COUNTDOWN_REMAINING = "countdown_remaining"
    DROPS_TODAY = "drops_today"
    STOCK_REMAINING = "stock_remaining"


class CanonicalState(BaseModel):
    """Mutable state, only changed by the engine's event loop."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    countdown_remaining: int = Field(default=0, ge=0)
    drops_today: int = Field(default=0, ge=0)
    stock_remaining: float = 0.0
    last_reset_date: date | None = None
    initializing: bool = True

    def snapshot(self) -> CanonicalState:
        """Detached copy for guard evaluation outside the event loop."""
        return self.model_copy()
