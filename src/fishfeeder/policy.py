"""Stock threshold policy.

Maps a raw stock reading to a fill fraction and decides which advisory,
if any, to raise.  The decision carries one bit of hysteresis so a
reading hovering around a threshold does not make the banner flap.
Everything here is pure; the engine owns the state in between calls.
"""

from __future__ import annotations

import enum
import math

from pydantic import BaseModel, ConfigDict

from fishfeeder.models.notification import NotificationRequest, Severity
from fishfeeder.models.thresholds import ThresholdConfig

MSG_CONTAINER_EMPTY = "Container is empty! Please refill fish food."
MSG_CONTAINER_FULL = "Container is full"
MSG_STOCK_LOW = "Fish food is getting low"


class HysteresisState(enum.StrEnum):
    NORMAL = "normal"
    SHOWING_EMPTY = "showing_empty"


class DecisionAction(enum.StrEnum):
    NONE = "none"
    SHOW = "show"
    DISMISS = "dismiss"


class StockDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: DecisionAction = DecisionAction.NONE
    notification: NotificationRequest | None = None


class StockEvaluation(BaseModel):
    """Result of :func:`evaluate`."""

    model_config = ConfigDict(frozen=True)

    fill_fraction: float
    display_percent: int
    decision: StockDecision
    state: HysteresisState


_NO_DECISION = StockDecision()
_DISMISS = StockDecision(action=DecisionAction.DISMISS)


def fill_fraction(stock: float, thresholds: ThresholdConfig) -> float:
    """Normalized emptiness: ``0.0`` when full, ``1.0`` when empty."""
    if stock >= thresholds.empty_threshold:
        return 1.0
    if stock <= thresholds.full_threshold:
        return 0.0
    return (stock - thresholds.full_threshold) / thresholds.span


def display_percent(fraction: float) -> int:
    """Remaining food as a whole percentage, halves rounded up."""
    return math.floor(max(0.0, min(100.0, (1.0 - fraction) * 100.0)) + 0.5)


def decide(stock: float, state: HysteresisState, thresholds: ThresholdConfig) -> tuple[StockDecision, HysteresisState]:
    """Transition table for the empty/full hysteresis.

    The "container full" banner is re-raised on every evaluation at the
    full level, not only on the transition out of empty.
    """
    showing_empty = state is HysteresisState.SHOWING_EMPTY

    if stock >= thresholds.empty_threshold:
        if showing_empty:
            return _NO_DECISION, state
        request = NotificationRequest(text=MSG_CONTAINER_EMPTY, severity=Severity.ERROR, persistent=True)
        return StockDecision(action=DecisionAction.SHOW, notification=request), HysteresisState.SHOWING_EMPTY

    if stock <= thresholds.full_threshold:
        request = NotificationRequest(text=MSG_CONTAINER_FULL, severity=Severity.SUCCESS)
        return StockDecision(action=DecisionAction.SHOW, notification=request), HysteresisState.NORMAL

    if stock <= thresholds.low_threshold:
        if showing_empty:
            return _NO_DECISION, state
        request = NotificationRequest(text=MSG_STOCK_LOW, severity=Severity.WARNING)
        return StockDecision(action=DecisionAction.SHOW, notification=request), state

    if showing_empty:
        return _DISMISS, HysteresisState.NORMAL
    return _NO_DECISION, state


def evaluate(stock: float, state: HysteresisState, thresholds: ThresholdConfig) -> StockEvaluation:
    """Evaluate a stock reading against *thresholds* given the prior *state*."""
    fraction = fill_fraction(stock, thresholds)
    decision, next_state = decide(stock, state, thresholds)
    return StockEvaluation(
        fill_fraction=fraction,
        display_percent=display_percent(fraction),
        decision=decision,
        state=next_state,
    )


class FeedBlock(enum.StrEnum):
    EMPTY = "empty"
    LOW = "low"


_FEED_BLOCK_MESSAGES = {
    FeedBlock.EMPTY: "Cannot feed: Container is empty!",
    FeedBlock.LOW: "Cannot feed: Stock is too low!",
}


def feed_block(stock: float, thresholds: ThresholdConfig) -> FeedBlock | None:
    """Which guard refuses a manual feed at *stock*, or ``None`` if allowed."""
    if stock >= thresholds.empty_threshold:
        return FeedBlock.EMPTY
    if stock <= thresholds.min_feed_stock:
        return FeedBlock.LOW
    return None


def feed_block_message(block: FeedBlock) -> str:
    return _FEED_BLOCK_MESSAGES[block]


def feed_block_reason(stock: float, thresholds: ThresholdConfig) -> str | None:
    """Why a manual feed must be refused at *stock*, or ``None`` if allowed."""
    block = feed_block(stock, thresholds)
    return None if block is None else feed_block_message(block)
