from __future__ import annotations

import pytest
from pydantic import TypeAdapter

from fishfeeder._constants import capacity_label, format_duration
from fishfeeder.models.commands import CommandIntent, FeedMode, Flush, ManualFeed, SetInterval
from fishfeeder.models.dashboard import FeederDashboard
from fishfeeder.models.notification import NotificationState, Severity
from fishfeeder.models.state import CanonicalState
from fishfeeder.models.thresholds import ThresholdConfig


def test_threshold_ordering_enforced() -> None:
    with pytest.raises(ValueError):
        ThresholdConfig(full_threshold=5.0, low_threshold=4.0, empty_threshold=9.5)
    with pytest.raises(ValueError):
        ThresholdConfig(full_threshold=3.2, low_threshold=9.5, empty_threshold=9.5)


def test_thresholds_are_frozen() -> None:
    thresholds = ThresholdConfig()
    with pytest.raises(ValueError):
        thresholds.empty_threshold = 1.0  # type: ignore[misc]


def test_feed_mode_wire_values() -> None:
    assert int(FeedMode.MANUAL_FEED) == 1
    assert int(FeedMode.FLUSH) == 2


def test_command_intent_discriminator() -> None:
    adapter = TypeAdapter(CommandIntent)
    assert isinstance(adapter.validate_python({"kind": "manual_feed"}), ManualFeed)
    assert isinstance(adapter.validate_python({"kind": "flush"}), Flush)
    interval = adapter.validate_python({"kind": "set_interval", "seconds": 60})
    assert isinstance(interval, SetInterval)
    assert interval.seconds == 60


def test_canonical_state_rejects_negative_counters() -> None:
    state = CanonicalState()
    with pytest.raises(ValueError):
        state.drops_today = -1


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(0, "00:00:00"), (59, "00:00:59"), (9000, "02:30:00"), (90061, "25:01:01"), (-5, "00:00:00")],
)
def test_format_duration(seconds: int, expected: str) -> None:
    assert format_duration(seconds) == expected


def test_capacity_label() -> None:
    assert capacity_label(0.5) == "1/2 kg"
    assert capacity_label(2.0) == "2 kg"


def test_dashboard_build() -> None:
    state = CanonicalState(countdown_remaining=3725, drops_today=4, stock_remaining=9.5, initializing=False)
    notification = NotificationState(text="Container is empty! Please refill fish food.", severity=Severity.ERROR, persistent=True)

    view = FeederDashboard.build(state, ThresholdConfig(), notification, drop_interval=9000)

    assert view.initializing is False
    assert view.stock_percent == 0
    assert view.fill_fraction == 1.0
    assert view.capacity_label == "1/2 kg"
    assert view.countdown_text == "01:02:05"
    assert view.drop_interval_text == "02:30:00"
    assert view.feed_enabled is False
    assert view.feed_blocked_reason == "Cannot feed: Container is empty!"
    assert view.notification.visible
