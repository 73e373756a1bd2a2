"""Read-only view of the feeder for a presentation layer."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from fishfeeder._constants import capacity_label, format_duration
from fishfeeder.models.notification import NotificationState
from fishfeeder.models.state import CanonicalState
from fishfeeder.models.thresholds import ThresholdConfig
from fishfeeder.policy import display_percent, feed_block_reason, fill_fraction


class FeederDashboard(BaseModel):
    """Everything a display needs for one redraw."""

    model_config = ConfigDict(frozen=True)

    initializing: bool
    stock_remaining: float
    fill_fraction: float
    stock_percent: int
    capacity_label: str
    countdown_remaining: int
    countdown_text: str
    drops_today: int
    drop_interval: int
    drop_interval_text: str
    feed_enabled: bool
    feed_blocked_reason: str | None = None
    notification: NotificationState

    @classmethod
    def build(
        cls,
        state: CanonicalState,
        thresholds: ThresholdConfig,
        notification: NotificationState,
        *,
        drop_interval: int,
    ) -> FeederDashboard:
        fraction = fill_fraction(state.stock_remaining, thresholds)
        blocked = feed_block_reason(state.stock_remaining, thresholds)
        return cls(
            initializing=state.initializing,
            stock_remaining=state.stock_remaining,
            fill_fraction=fraction,
            stock_percent=display_percent(fraction),
            capacity_label=capacity_label(thresholds.capacity_kg),
            countdown_remaining=state.countdown_remaining,
            countdown_text=format_duration(state.countdown_remaining),
            drops_today=state.drops_today,
            drop_interval=drop_interval,
            drop_interval_text=format_duration(drop_interval),
            feed_enabled=blocked is None,
            feed_blocked_reason=blocked,
            notification=notification,
        )
