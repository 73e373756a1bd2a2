"""Operator command validation and dispatch."""

from __future__ import annotations

import logging

from fishfeeder._constants import (
    PATH_COMMAND_COUNTDOWN,
    PATH_COMMAND_MODE,
    PATH_COUNTDOWN_REMAINING,
    PATH_DROPS_TODAY,
)
from fishfeeder.exceptions import FeederDispatchBlockedError, FeederStoreError
from fishfeeder.models.commands import (
    CommandIntent,
    DispatchError,
    DispatchResult,
    FeedMode,
    Flush,
    ManualFeed,
    SetInterval,
)
from fishfeeder.models.notification import NotificationRequest, Severity
from fishfeeder.models.state import CanonicalState
from fishfeeder.models.thresholds import ThresholdConfig
from fishfeeder.policy import feed_block, feed_block_message
from fishfeeder.store.base import FieldStore

_logger = logging.getLogger(__name__)


def check_manual_feed(state: CanonicalState, thresholds: ThresholdConfig) -> None:
    """Raise :class:`FeederDispatchBlockedError` if a manual feed is unsafe."""
    block = feed_block(state.stock_remaining, thresholds)
    if block is not None:
        raise FeederDispatchBlockedError(feed_block_message(block), reason=block.value)


def _success(
    intent: CommandIntent,
    text: str,
    *,
    countdown: int | None = None,
    feed_written: bool = False,
) -> DispatchResult:
    return DispatchResult(
        intent=intent,
        message=text,
        notification=NotificationRequest(text=text, severity=Severity.SUCCESS),
        countdown=countdown,
        feed_written=feed_written,
    )


def _failure(
    intent: CommandIntent,
    error: DispatchError,
    text: str,
    *,
    feed_written: bool = False,
) -> DispatchResult:
    return DispatchResult(
        intent=intent,
        error=error,
        message=text,
        notification=NotificationRequest(text=text, severity=Severity.ERROR),
        feed_written=feed_written,
    )


class CommandDispatcher:
    """Sends operator commands to the store.

    The dispatcher never touches engine state.  Each call evaluates its
    guard against the state snapshot it was handed, so overlapping calls
    cannot interfere, and describes its side effects in the returned
    :class:`DispatchResult` for the engine to apply.
    """

    def __init__(
        self,
        store: FieldStore,
        thresholds: ThresholdConfig,
        *,
        increment_retries: int = 0,
    ) -> None:
        self._store = store
        self._thresholds = thresholds
        self._increment_retries = increment_retries

    async def dispatch(self, intent: CommandIntent, state: CanonicalState) -> DispatchResult:
        if isinstance(intent, ManualFeed):
            return await self._manual_feed(intent, state)
        if isinstance(intent, Flush):
            return await self._flush(intent)
        if isinstance(intent, SetInterval):
            return await self._set_interval(intent)
        raise TypeError(f"Unsupported command intent: {intent!r}")

    async def _manual_feed(self, intent: ManualFeed, state: CanonicalState) -> DispatchResult:
        block = feed_block(state.stock_remaining, self._thresholds)
        if block is not None:
            _logger.debug("Manual feed blocked at stock=%s: %s", state.stock_remaining, block)
            return _failure(intent, DispatchError.BLOCKED, feed_block_message(block))

        try:
            await self._store.write(PATH_COMMAND_MODE, int(FeedMode.MANUAL_FEED))
        except FeederStoreError as exc:
            _logger.warning("Manual feed command write failed: %s", exc)
            return _failure(intent, DispatchError.WRITE_FAILED, f"Failed to send command: {exc}")

        # The device acts on the mode write alone; the count cannot be rolled back.
        attempts = 1 + self._increment_retries
        for attempt in range(1, attempts + 1):
            try:
                await self._store.increment(PATH_DROPS_TODAY, 1)
                break
            except FeederStoreError as exc:
                _logger.warning("Drop counter increment failed attempt=%s/%s: %s", attempt, attempts, exc)
                if attempt == attempts:
                    return _failure(
                        intent,
                        DispatchError.WRITE_FAILED,
                        f"Fed fish, but failed to update drop count: {exc}",
                        feed_written=True,
                    )

        return _success(intent, "Fed fish", feed_written=True)

    async def _flush(self, intent: Flush) -> DispatchResult:
        try:
            await self._store.write(PATH_COMMAND_MODE, int(FeedMode.FLUSH))
        except FeederStoreError as exc:
            _logger.warning("Flush command write failed: %s", exc)
            return _failure(intent, DispatchError.WRITE_FAILED, f"Failed to send command: {exc}")
        return _success(intent, "Flush activated")

    async def _set_interval(self, intent: SetInterval) -> DispatchResult:
        seconds = intent.seconds
        try:
            await self._store.write(PATH_COMMAND_COUNTDOWN, seconds)
            await self._store.write(PATH_COUNTDOWN_REMAINING, seconds)
        except FeederStoreError as exc:
            _logger.warning("Set interval to %ss failed: %s", seconds, exc)
            return _failure(intent, DispatchError.WRITE_FAILED, f"Failed to set interval: {exc}")
        return _success(intent, "Interval set successfully", countdown=seconds)
