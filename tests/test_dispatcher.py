from __future__ import annotations

from typing import Any

import pytest

from fishfeeder.dispatcher import CommandDispatcher, check_manual_feed
from fishfeeder.exceptions import FeederDispatchBlockedError, FeederWriteError
from fishfeeder.models.commands import DispatchError, Flush, ManualFeed, SetInterval
from fishfeeder.models.notification import Severity
from fishfeeder.models.state import CanonicalState
from fishfeeder.models.thresholds import ThresholdConfig
from fishfeeder.store.memory import MemoryFieldStore

THRESHOLDS = ThresholdConfig()


def _state(stock: float) -> CanonicalState:
    return CanonicalState(stock_remaining=stock, drops_today=2, initializing=False)


def _store() -> MemoryFieldStore:
    return MemoryFieldStore({"status": {"drops_today": 2}})


class _FlakyIncrementStore(MemoryFieldStore):
    """Fails the first *failures* increments, then behaves normally."""

    def __init__(self, failures: int, initial: dict[str, Any] | None = None) -> None:
        super().__init__(initial)
        self.remaining_failures = failures
        self.increment_attempts = 0

    async def increment(self, path: str, delta: int | float) -> None:
        self.increment_attempts += 1
        if self.remaining_failures > 0:
            self.remaining_failures -= 1
            raise FeederWriteError("transient", path=path)
        await super().increment(path, delta)


@pytest.mark.asyncio
async def test_manual_feed_blocked_when_empty() -> None:
    store = _store()
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    result = await dispatcher.dispatch(ManualFeed(), _state(THRESHOLDS.empty_threshold))

    assert result.error is DispatchError.BLOCKED
    assert result.message == "Cannot feed: Container is empty!"
    assert result.notification is not None
    assert result.notification.severity is Severity.ERROR
    assert store.writes == []


@pytest.mark.asyncio
async def test_manual_feed_blocked_at_safety_floor() -> None:
    store = _store()
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    result = await dispatcher.dispatch(ManualFeed(), _state(0.5))

    assert result.error is DispatchError.BLOCKED
    assert result.message == "Cannot feed: Stock is too low!"
    assert store.writes == []


@pytest.mark.asyncio
async def test_manual_feed_writes_mode_then_increments() -> None:
    store = _store()
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    result = await dispatcher.dispatch(ManualFeed(), _state(0.51))

    assert result.ok
    assert result.feed_written
    assert result.message == "Fed fish"
    assert result.notification is not None
    assert result.notification.severity is Severity.SUCCESS
    assert result.notification.persistent is False
    assert store.writes == [
        ("write", "commands/mode", 1),
        ("increment", "status/drops_today", 1),
    ]
    assert store.get("status/drops_today") == 3


@pytest.mark.asyncio
async def test_manual_feed_mode_write_failure_skips_increment() -> None:
    store = _store()
    store.fail("write", "commands/mode")
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    result = await dispatcher.dispatch(ManualFeed(), _state(6.0))

    assert result.error is DispatchError.WRITE_FAILED
    assert result.feed_written is False
    assert result.message.startswith("Failed to send command:")
    assert store.writes == []


@pytest.mark.asyncio
async def test_manual_feed_increment_failure_keeps_mode_write() -> None:
    store = _store()
    store.fail("increment")
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    result = await dispatcher.dispatch(ManualFeed(), _state(6.0))

    assert result.error is DispatchError.WRITE_FAILED
    assert result.feed_written is True
    assert "failed to update drop count" in result.message
    assert store.writes == [("write", "commands/mode", 1)]
    assert store.get("commands/mode") == 1
    assert store.get("status/drops_today") == 2


@pytest.mark.asyncio
async def test_manual_feed_increment_retries_when_configured() -> None:
    store = _FlakyIncrementStore(failures=1, initial={"status": {"drops_today": 0}})
    dispatcher = CommandDispatcher(store, THRESHOLDS, increment_retries=1)

    result = await dispatcher.dispatch(ManualFeed(), _state(6.0))

    assert result.ok
    assert store.increment_attempts == 2
    assert store.get("status/drops_today") == 1


@pytest.mark.asyncio
async def test_manual_feed_does_not_retry_by_default() -> None:
    store = _FlakyIncrementStore(failures=1)
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    result = await dispatcher.dispatch(ManualFeed(), _state(6.0))

    assert result.error is DispatchError.WRITE_FAILED
    assert store.increment_attempts == 1


@pytest.mark.asyncio
async def test_flush_has_no_guard() -> None:
    store = _store()
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    result = await dispatcher.dispatch(Flush(), _state(THRESHOLDS.empty_threshold + 5))

    assert result.ok
    assert result.message == "Flush activated"
    assert store.writes == [("write", "commands/mode", 2)]


@pytest.mark.asyncio
async def test_set_interval_writes_command_and_mirror() -> None:
    store = _store()
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    result = await dispatcher.dispatch(SetInterval(seconds=9000), _state(6.0))

    assert result.ok
    assert result.countdown == 9000
    assert result.message == "Interval set successfully"
    assert store.writes == [
        ("write", "commands/countdown", 9000),
        ("write", "data/countdown_remaining", 9000),
    ]


@pytest.mark.asyncio
async def test_set_interval_failure_has_no_mirror() -> None:
    store = _store()
    store.fail("write", "data/countdown_remaining")
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    result = await dispatcher.dispatch(SetInterval(seconds=60), _state(6.0))

    assert result.error is DispatchError.WRITE_FAILED
    assert result.countdown is None
    assert result.message.startswith("Failed to set interval:")


def test_set_interval_requires_positive_seconds() -> None:
    with pytest.raises(ValueError):
        SetInterval(seconds=0)
    with pytest.raises(ValueError):
        SetInterval(seconds=-5)


def test_check_manual_feed_raises_with_reason() -> None:
    with pytest.raises(FeederDispatchBlockedError) as excinfo:
        check_manual_feed(_state(10.0), THRESHOLDS)
    assert excinfo.value.reason == "empty"

    with pytest.raises(FeederDispatchBlockedError) as excinfo:
        check_manual_feed(_state(0.2), THRESHOLDS)
    assert excinfo.value.reason == "low"

    check_manual_feed(_state(6.0), THRESHOLDS)


@pytest.mark.asyncio
async def test_raise_for_error_maps_dispatch_errors() -> None:
    store = _store()
    dispatcher = CommandDispatcher(store, THRESHOLDS)

    blocked = await dispatcher.dispatch(ManualFeed(), _state(10.0))
    with pytest.raises(FeederDispatchBlockedError):
        blocked.raise_for_error()

    store.fail("write")
    failed = await dispatcher.dispatch(Flush(), _state(6.0))
    with pytest.raises(FeederWriteError):
        failed.raise_for_error()

    store.clear_failures()
    ok = await dispatcher.dispatch(Flush(), _state(6.0))
    ok.raise_for_error()
