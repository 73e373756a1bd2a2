"""Daily drop-counter reset."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import date

from fishfeeder.exceptions import FeederStoreError

_logger = logging.getLogger(__name__)


class DailyCounterResetScheduler:
    """Zeroes the drop counter once per local calendar day.

    :meth:`check` is driven by a coarse periodic tick.  ``last_reset_date``
    only advances once the reset write has succeeded, so a failed write is
    retried on the next tick instead of silently skipping the day.  While a
    reset for a date is in flight, further ticks for that date are no-ops.
    """

    def __init__(
        self,
        reset_action: Callable[[date], Awaitable[None]],
        *,
        today: Callable[[], date] = date.today,
        on_failure: Callable[[FeederStoreError], None] | None = None,
        last_reset_date: date | None = None,
    ) -> None:
        self._reset_action = reset_action
        self._today = today
        self._on_failure = on_failure
        self._last_reset_date = last_reset_date
        self._pending_date: date | None = None

    @property
    def last_reset_date(self) -> date | None:
        return self._last_reset_date

    @property
    def pending_date(self) -> date | None:
        return self._pending_date

    def is_due(self, today: date) -> bool:
        if self._pending_date == today:
            return False
        return self._last_reset_date is None or self._last_reset_date != today

    async def check(self, today: date | None = None) -> bool:
        """Run the reset if the calendar day has changed.

        Returns ``True`` only when a reset was performed by this call.
        """
        current = today if today is not None else self._today()
        if not self.is_due(current):
            return False

        self._pending_date = current
        _logger.debug("Daily counter reset due last=%s today=%s", self._last_reset_date, current)
        try:
            await self._reset_action(current)
        except FeederStoreError as exc:
            _logger.warning("Daily counter reset failed for %s: %s", current, exc)
            if self._on_failure is not None:
                self._on_failure(exc)
            return False
        finally:
            if self._pending_date == current:
                self._pending_date = None

        self._last_reset_date = current
        _logger.debug("Daily counter reset done for %s", current)
        return True
