"""
Scheduling abstraction for simulation timers.

Providers never sleep or create tasks themselves: they ask a Scheduler for
periodic timers and read the current time from it. Two implementations:

- Scheduler: asyncio based. Every timer runs as its own task, so timers
  fire concurrently and independently of each other.
- ManualScheduler: deterministic fake with a manually advanced clock that
  fires due callbacks synchronously. Used in tests.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

from .errors import FatalSimulationError
from .logging import log_critical, log_error

TimerCallback = Callable[[], Awaitable[None]]
FatalHandler = Callable[[FatalSimulationError], None]


def _check_period(period_ms: float) -> None:
    if period_ms is None or period_ms <= 0:
        raise ValueError(f"Timer period must be positive, got {period_ms} ms")


class PeriodicTimer:
    """
    Invokes a coroutine callback every ``period_ms`` milliseconds.

    The callback is awaited before the next sleep starts, so one timer never
    overlaps with itself. ``stop()`` cancels future invocations; a callback
    already running is shielded and runs to completion.
    """

    def __init__(self, scheduler: 'Scheduler', callback: TimerCallback, period_ms: float):
        _check_period(period_ms)
        self._scheduler = scheduler
        self.callback = callback
        self.period_ms = period_ms
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def period_seconds(self) -> float:
        return self.period_ms / 1000.0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        """Stop the timer. Safe to call more than once."""
        if not self._running:
            return
        self._running = False
        self._scheduler._discard(self)
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.period_seconds)
                if not self._running:
                    break
                await asyncio.shield(self._invoke())
            except asyncio.CancelledError:
                break

    async def _invoke(self) -> None:
        try:
            await self.callback()
        except FatalSimulationError as e:
            log_critical(f"Fatal error in timer callback {_name_of(self.callback)}: {e}",
                         exc_info=True)
            self.stop()
            self._scheduler.report_fatal(e)
        except Exception as e:
            log_error(f"Error in timer callback {_name_of(self.callback)}: {e}", exc_info=True)


class Scheduler:
    """Wall clock and periodic timers backed by the running asyncio loop."""

    def __init__(self, fatal_handler: Optional[FatalHandler] = None):
        self.fatal_handler = fatal_handler
        self.fatal_error: Optional[FatalSimulationError] = None
        self._timers: set = set()

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def new_periodic_timer(self, callback: TimerCallback, period_ms: float) -> PeriodicTimer:
        """Create and start a periodic timer."""
        timer = PeriodicTimer(self, callback, period_ms)
        self._timers.add(timer)
        timer.start()
        return timer

    @property
    def active_timers(self) -> list:
        return [t for t in self._timers if t.is_running]

    def stop_all(self) -> None:
        for timer in list(self._timers):
            timer.stop()

    def report_fatal(self, error: FatalSimulationError) -> None:
        """Record a fatal error raised by a timer callback."""
        if self.fatal_error is None:
            self.fatal_error = error
        if self.fatal_handler is not None:
            self.fatal_handler(error)

    def _discard(self, timer) -> None:
        self._timers.discard(timer)


class ManualTimer:
    """Timer driven by ManualScheduler.advance()."""

    def __init__(self, scheduler: 'ManualScheduler', callback: TimerCallback,
                 period_ms: float, due_ms: float):
        _check_period(period_ms)
        self._scheduler = scheduler
        self.callback = callback
        self.period_ms = period_ms
        self.due_ms = due_ms
        self.fire_count = 0
        self._running = True

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        self._scheduler._discard(self)

    async def fire(self) -> None:
        self.fire_count += 1
        await self.callback()


class ManualScheduler:
    """
    Deterministic scheduler for tests.

    Time only moves when ``advance()`` is called. Due callbacks are awaited
    one after another in due-time order, and their exceptions propagate to
    the caller of ``advance()``.
    """

    def __init__(self, start: Optional[datetime] = None):
        self._start = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._elapsed_ms = 0.0
        self._timers: list = []

    @property
    def elapsed_ms(self) -> float:
        return self._elapsed_ms

    def now(self) -> datetime:
        return self._start + timedelta(milliseconds=self._elapsed_ms)

    def new_periodic_timer(self, callback: TimerCallback, period_ms: float) -> ManualTimer:
        timer = ManualTimer(self, callback, period_ms, self._elapsed_ms + period_ms)
        self._timers.append(timer)
        return timer

    @property
    def active_timers(self) -> list:
        return list(self._timers)

    def stop_all(self) -> None:
        for timer in list(self._timers):
            timer.stop()

    def report_fatal(self, error: FatalSimulationError) -> None:
        raise error

    async def advance(self, ms: float) -> None:
        """Move the clock forward, firing every timer that becomes due."""
        target = self._elapsed_ms + ms
        while True:
            due = [t for t in self._timers if t.due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due_ms)
            self._elapsed_ms = timer.due_ms
            timer.due_ms += timer.period_ms
            await timer.fire()
        self._elapsed_ms = target

    async def fire(self, timer: ManualTimer) -> None:
        """Invoke one timer immediately, without moving the clock."""
        await timer.fire()

    def _discard(self, timer) -> None:
        if timer in self._timers:
            self._timers.remove(timer)


def _name_of(callback) -> str:
    return getattr(callback, "__qualname__", repr(callback))
