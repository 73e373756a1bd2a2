"""Operator command intents and dispatch outcomes."""

from __future__ import annotations

import enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt

from fishfeeder.exceptions import FeederDispatchBlockedError, FeederWriteError
from fishfeeder.models.notification import NotificationRequest


class FeedMode(enum.IntEnum):
    """Values the device firmware accepts on ``commands/mode``."""

    MANUAL_FEED = 1
    FLUSH = 2


class ManualFeed(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["manual_feed"] = "manual_feed"


class Flush(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["flush"] = "flush"


class SetInterval(BaseModel):
    """Restart the feed countdown with a new interval."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["set_interval"] = "set_interval"
    seconds: PositiveInt


CommandIntent = Annotated[ManualFeed | Flush | SetInterval, Field(discriminator="kind")]


class DispatchError(enum.StrEnum):
    BLOCKED = "blocked"
    WRITE_FAILED = "write_failed"


class DispatchResult(BaseModel):
    """Outcome of a single command dispatch.

    ``countdown`` is set when a successful ``SetInterval`` must be
    mirrored into the local countdown.  ``feed_written`` records whether
    the feed-mode write reached the store, which can be true even when
    the dispatch as a whole failed on the counter increment.
    """

    model_config = ConfigDict(frozen=True)

    intent: CommandIntent
    error: DispatchError | None = None
    message: str = ""
    notification: NotificationRequest | None = None
    countdown: int | None = None
    feed_written: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        """Raise the matching :mod:`fishfeeder.exceptions` error if the dispatch failed."""
        if self.error is DispatchError.BLOCKED:
            raise FeederDispatchBlockedError(self.message)
        if self.error is DispatchError.WRITE_FAILED:
            raise FeederWriteError(self.message)
