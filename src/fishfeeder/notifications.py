"""Advisory banner with timed auto-dismissal."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from fishfeeder._constants import NOTIFICATION_TIMEOUT
from fishfeeder.models.notification import NotificationRequest, NotificationState, Severity

_logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


Scheduler = Callable[[float, Callable[[], None]], TimerHandle]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _loop_scheduler(delay: float, callback: Callable[[], None]) -> TimerHandle:
    return asyncio.get_running_loop().call_later(delay, callback)


class NotificationCenter:
    """Holds the current banner and owns its auto-dismiss timer.

    Newest call always wins.  Every show or dismiss bumps a generation
    counter; an auto-dismiss timer captures the generation it was armed
    for and does nothing if the banner has been replaced since.
    """

    def __init__(
        self,
        *,
        timeout: float = NOTIFICATION_TIMEOUT,
        schedule: Scheduler = _loop_scheduler,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._timeout = timeout
        self._schedule = schedule
        self._clock = clock
        self._state = NotificationState()
        self._generation = 0
        self._timer: TimerHandle | None = None

    @property
    def generation(self) -> int:
        return self._generation

    def current(self) -> NotificationState:
        return self._state

    def show(self, request: NotificationRequest) -> int:
        if request.persistent:
            return self.show_persistent(request.text, request.severity)
        return self.show_transient(request.text, request.severity)

    def show_transient(self, text: str, severity: Severity) -> int:
        """Show *text* and hide it again after the configured timeout."""
        generation = self._replace(text, severity, persistent=False)
        self._timer = self._schedule(self._timeout, lambda: self.expire(generation))
        return generation

    def show_persistent(self, text: str, severity: Severity) -> int:
        """Show *text* until it is dismissed or superseded."""
        return self._replace(text, severity, persistent=True)

    def dismiss(self) -> None:
        """Hide the banner.  Idempotent."""
        self._cancel_timer()
        if not self._state.visible:
            return
        self._generation += 1
        self._state = self._state.model_copy(update={"severity": None, "persistent": False})
        _logger.debug("Notification dismissed")

    def expire(self, generation: int) -> bool:
        """Auto-dismiss callback; a no-op unless *generation* is still current."""
        if generation != self._generation:
            _logger.debug("Stale notification timer ignored generation=%s current=%s", generation, self._generation)
            return False
        self._timer = None
        if not self._state.visible:
            return False
        self._state = self._state.model_copy(update={"severity": None})
        _logger.debug("Notification expired generation=%s", generation)
        return True

    def close(self) -> None:
        """Release the pending timer, if any."""
        self._cancel_timer()
        self._generation += 1

    def _replace(self, text: str, severity: Severity, *, persistent: bool) -> int:
        self._cancel_timer()
        self._generation += 1
        self._state = NotificationState(
            text=text,
            severity=severity,
            persistent=persistent,
            active_since=self._clock(),
        )
        _logger.debug(
            "Notification shown severity=%s persistent=%s generation=%s text=%s",
            severity,
            persistent,
            self._generation,
            text,
        )
        return self._generation

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None:
            timer.cancel()
