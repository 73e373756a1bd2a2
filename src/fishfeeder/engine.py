"""Feeder control engine.

Owns the canonical feeder state and serializes every change to it.
Subscriptions, periodic ticks, notification timers and command
completions never touch state directly: they post events to a single
mailbox that one consumer task applies in order.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any

from fishfeeder import policy
from fishfeeder._constants import (
    DEFAULT_DROP_INTERVAL,
    PATH_COUNTDOWN_REMAINING,
    PATH_DROPS_TODAY,
    PATH_STOCK_REMAINING,
)
from fishfeeder.config import FeederConfig
from fishfeeder.dispatcher import CommandDispatcher
from fishfeeder.exceptions import FeederError, FeederInitializationError, FeederStoreError
from fishfeeder.ingestion import FeederSnapshot, coerce_field
from fishfeeder.models.commands import CommandIntent, DispatchResult
from fishfeeder.models.dashboard import FeederDashboard
from fishfeeder.models.notification import NotificationRequest, NotificationState, Severity
from fishfeeder.models.state import CanonicalState, EngineState, FeederField
from fishfeeder.notifications import NotificationCenter, TimerHandle
from fishfeeder.policy import DecisionAction, HysteresisState, StockEvaluation
from fishfeeder.scheduler import DailyCounterResetScheduler
from fishfeeder.store.base import FieldStore

_logger = logging.getLogger(__name__)

_SUBSCRIPTIONS: tuple[tuple[FeederField, str], ...] = (
    (FeederField.COUNTDOWN_REMAINING, PATH_COUNTDOWN_REMAINING),
    (FeederField.DROPS_TODAY, PATH_DROPS_TODAY),
    (FeederField.STOCK_REMAINING, PATH_STOCK_REMAINING),
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


# ------------------------------------------------------------------
# Mailbox events
# ------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class _SnapshotLoaded:
    snapshot: FeederSnapshot | None = None
    error: FeederInitializationError | None = None


@dataclass(frozen=True, slots=True)
class _FieldUpdated:
    field: FeederField
    raw: Any


@dataclass(frozen=True, slots=True)
class _StockTick:
    pass


@dataclass(frozen=True, slots=True)
class _ResetTick:
    pass


@dataclass(frozen=True, slots=True)
class _DropsReset:
    day: date


@dataclass(frozen=True, slots=True)
class _Notify:
    request: NotificationRequest


@dataclass(frozen=True, slots=True)
class _DispatchCompleted:
    result: DispatchResult


@dataclass(frozen=True, slots=True)
class _TimerFired:
    callback: Callable[[], Any]


_Event = _SnapshotLoaded | _FieldUpdated | _StockTick | _ResetTick | _DropsReset | _Notify | _DispatchCompleted | _TimerFired


class FeederControlEngine:
    """Reactive controller for one remote feeder.

    Usage::

        async with FeederControlEngine(store, config) as engine:
            await engine.wait_until_live()
            result = await engine.dispatch(ManualFeed())
            print(engine.dashboard().stock_percent)
    """

    def __init__(
        self,
        store: FieldStore,
        config: FeederConfig | None = None,
        *,
        today: Callable[[], date] = date.today,
        clock: Callable[[], datetime] = _utcnow,
        on_change: Callable[[FeederControlEngine], None] | None = None,
    ) -> None:
        self._store = store
        self._config = config or FeederConfig()
        self._thresholds = self._config.thresholds
        self._today = today
        self._on_change = on_change

        self._state = CanonicalState()
        self._engine_state = EngineState.INITIALIZING
        self._hysteresis = HysteresisState.NORMAL
        self._last_evaluation: StockEvaluation | None = None
        self._drop_interval = DEFAULT_DROP_INTERVAL

        self._notifications = NotificationCenter(
            timeout=self._config.notification_timeout,
            schedule=self._schedule_timer,
            clock=clock,
        )
        self._dispatcher = CommandDispatcher(
            store,
            self._thresholds,
            increment_retries=self._config.increment_retries,
        )
        self._reset_scheduler = DailyCounterResetScheduler(
            self._reset_daily_count,
            today=today,
            on_failure=self._on_reset_failure,
        )

        self._mailbox: asyncio.Queue[tuple[_Event, asyncio.Future[None] | None]] = asyncio.Queue()
        self._consumer: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._live = asyncio.Event()

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> FeederControlEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        """Start the mailbox, the initial load and the periodic ticks."""
        if self._consumer is not None:
            return
        if self._engine_state is EngineState.STOPPED:
            raise FeederError("Engine has been stopped and cannot be restarted")
        _logger.debug("Starting feeder engine root=%s", self._config.root_path)
        self._consumer = asyncio.create_task(self._consume(), name="fishfeeder-mailbox")
        self._spawn(self._initialize(), name="fishfeeder-initialize")
        self._spawn(self._tick(self._config.reset_check_interval, _ResetTick), name="fishfeeder-reset-tick")
        self._spawn(self._tick(self._config.stock_poll_interval, _StockTick), name="fishfeeder-stock-tick")

    async def stop(self) -> None:
        """Cancel subscriptions, ticks and timers.  Idempotent."""
        if self._engine_state is EngineState.STOPPED:
            return
        self._engine_state = EngineState.STOPPED
        tasks = list(self._tasks)
        self._tasks.clear()
        consumer = self._consumer
        self._consumer = None
        if consumer is not None:
            tasks.append(consumer)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._notifications.close()

        # Release callers still waiting on events that will never be applied.
        while not self._mailbox.empty():
            _event, done = self._mailbox.get_nowait()
            if done is not None and not done.done():
                done.set_result(None)
        _logger.debug("Feeder engine stopped")

    # ------------------------------------------------------------------
    # Public read API
    # ------------------------------------------------------------------

    @property
    def engine_state(self) -> EngineState:
        return self._engine_state

    @property
    def is_live(self) -> bool:
        return self._engine_state is EngineState.LIVE

    @property
    def state(self) -> CanonicalState:
        """Copy of the canonical state."""
        return self._state.snapshot()

    @property
    def hysteresis(self) -> HysteresisState:
        return self._hysteresis

    @property
    def last_evaluation(self) -> StockEvaluation | None:
        return self._last_evaluation

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    @property
    def drop_interval(self) -> int:
        return self._drop_interval

    def notification(self) -> NotificationState:
        return self._notifications.current()

    def dashboard(self) -> FeederDashboard:
        return FeederDashboard.build(
            self._state,
            self._thresholds,
            self._notifications.current(),
            drop_interval=self._drop_interval,
        )

    async def wait_until_live(self, timeout: float | None = None) -> bool:
        """Wait for the initial load to finish.  Returns ``False`` on timeout."""
        try:
            await asyncio.wait_for(self._live.wait(), timeout)
        except TimeoutError:
            return False
        return True

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def dispatch(self, intent: CommandIntent) -> DispatchResult:
        """Validate and send an operator command.

        The guard is evaluated against the state as of this call.  When
        this returns, the result's notification and any countdown mirror
        have been applied.
        """
        self._require_running()
        result = await self._dispatcher.dispatch(intent, self._state.snapshot())
        _logger.debug("Dispatch %s finished error=%s", intent.kind, result.error)
        await self._submit(_DispatchCompleted(result))
        return result

    async def check_daily_reset(self) -> bool:
        """Run one daily-reset check now instead of waiting for the tick."""
        self._require_running()
        return await self._reset_scheduler.check(self._today())

    # ------------------------------------------------------------------
    # Mailbox
    # ------------------------------------------------------------------

    def _require_running(self) -> None:
        if self._consumer is None:
            raise FeederError("Engine not running. Use 'async with FeederControlEngine(...) as engine:'")

    def _post(self, event: _Event) -> None:
        if self._engine_state is EngineState.STOPPED:
            return
        self._mailbox.put_nowait((event, None))

    async def _submit(self, event: _Event) -> None:
        """Post *event* and wait until it has been applied."""
        if self._engine_state is EngineState.STOPPED:
            return
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._mailbox.put_nowait((event, done))
        await done

    async def _consume(self) -> None:
        while True:
            event, done = await self._mailbox.get()
            try:
                self._apply(event)
            except Exception:
                _logger.exception("Failed to apply %s", type(event).__name__)
            finally:
                if done is not None and not done.done():
                    done.set_result(None)
            if self._on_change is not None:
                try:
                    self._on_change(self)
                except Exception:
                    _logger.debug("on_change callback failed", exc_info=True)

    def _apply(self, event: _Event) -> None:
        if isinstance(event, _FieldUpdated):
            self._apply_field(event.field, event.raw)
        elif isinstance(event, _StockTick):
            if self.is_live:
                self._evaluate_stock()
        elif isinstance(event, _ResetTick):
            self._spawn(self._reset_scheduler.check(self._today()), name="fishfeeder-daily-reset")
        elif isinstance(event, _DropsReset):
            self._state.drops_today = 0
            self._state.last_reset_date = event.day
        elif isinstance(event, _Notify):
            self._notifications.show(event.request)
        elif isinstance(event, _DispatchCompleted):
            self._apply_dispatch(event.result)
        elif isinstance(event, _TimerFired):
            event.callback()
        elif isinstance(event, _SnapshotLoaded):
            self._apply_snapshot(event)

    def _apply_snapshot(self, event: _SnapshotLoaded) -> None:
        if event.snapshot is not None:
            self._state.countdown_remaining = event.snapshot.countdown_remaining
            self._state.drops_today = event.snapshot.drops_today
            self._state.stock_remaining = event.snapshot.stock_remaining
        self._state.initializing = False
        self._engine_state = EngineState.LIVE
        self._live.set()
        _logger.debug("Engine live state=%s", self._state)
        if event.error is not None:
            self._notifications.show_transient(str(event.error), Severity.ERROR)
            return
        self._evaluate_stock()

    def _apply_field(self, field: FeederField, raw: Any) -> None:
        value = coerce_field(field, raw)
        if value is None:
            return
        if field is FeederField.COUNTDOWN_REMAINING:
            self._state.countdown_remaining = int(value)
        elif field is FeederField.DROPS_TODAY:
            self._state.drops_today = int(value)
        elif field is FeederField.STOCK_REMAINING:
            self._state.stock_remaining = float(value)
            self._evaluate_stock()

    def _apply_dispatch(self, result: DispatchResult) -> None:
        if result.countdown is not None:
            self._state.countdown_remaining = result.countdown
            self._drop_interval = result.countdown
        if result.notification is not None:
            self._notifications.show(result.notification)

    def _evaluate_stock(self) -> None:
        evaluation = policy.evaluate(self._state.stock_remaining, self._hysteresis, self._thresholds)
        if evaluation.state is not self._hysteresis:
            _logger.debug("Stock hysteresis %s -> %s at %s", self._hysteresis, evaluation.state, self._state.stock_remaining)
        self._hysteresis = evaluation.state
        self._last_evaluation = evaluation
        decision = evaluation.decision
        if decision.action is DecisionAction.SHOW and decision.notification is not None:
            self._notifications.show(decision.notification)
        elif decision.action is DecisionAction.DISMISS:
            self._notifications.dismiss()

    # ------------------------------------------------------------------
    # Background producers
    # ------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> None:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _schedule_timer(self, delay: float, callback: Callable[[], Any]) -> TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(delay, self._post, _TimerFired(callback))

    async def _initialize(self) -> None:
        try:
            snapshot = FeederSnapshot.from_tree(await self._store.read_once(""))
        except FeederStoreError as exc:
            _logger.warning("Initial snapshot read failed: %s", exc)
            await self._submit(_SnapshotLoaded(error=FeederInitializationError(f"Error initializing: {exc}")))
        except Exception as exc:
            _logger.warning("Initial snapshot read failed", exc_info=True)
            await self._submit(_SnapshotLoaded(error=FeederInitializationError(f"Error initializing: {exc}")))
        else:
            await self._submit(_SnapshotLoaded(snapshot=snapshot))

        for field, path in _SUBSCRIPTIONS:
            self._spawn(self._follow(field, path), name=f"fishfeeder-subscribe-{field}")

    async def _follow(self, field: FeederField, path: str) -> None:
        while True:
            try:
                async for change in self._store.subscribe(path):
                    self._post(_FieldUpdated(field, change.value))
            except FeederStoreError as exc:
                _logger.warning("Subscription %s dropped: %s", path, exc)
            except Exception:
                _logger.warning("Subscription %s failed", path, exc_info=True)
            else:
                _logger.warning("Subscription %s ended", path)
            await asyncio.sleep(self._config.resubscribe_delay)

    async def _tick(self, interval: float, factory: Callable[[], _Event]) -> None:
        while True:
            await asyncio.sleep(interval)
            self._post(factory())

    async def _reset_daily_count(self, day: date) -> None:
        await self._store.write(PATH_DROPS_TODAY, 0)
        await self._submit(_DropsReset(day))

    def _on_reset_failure(self, exc: FeederStoreError) -> None:
        self._post(_Notify(NotificationRequest(text=f"Failed to reset daily count: {exc}", severity=Severity.ERROR)))
