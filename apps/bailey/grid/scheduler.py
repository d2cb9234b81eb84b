"""
Timer scheduling for the grid core.

Debounced autosave and the countdown timer never touch wall-clock timers
directly; they receive a Scheduler. AsyncioScheduler runs callbacks on the
event loop, ManualScheduler runs them on a simulated clock that tests advance
explicitly.

Callbacks may be plain functions or coroutine functions. AsyncioScheduler
wraps a returned awaitable into a task; ManualScheduler awaits it inside
advance(), so by the time advance() returns every due callback has finished.
"""

import asyncio
import inspect
import itertools
import logging
from typing import Any, Callable, List, Optional, Set

logger = logging.getLogger(__name__)


class Scheduler:
    """Interface: schedule a callback after a delay in milliseconds."""

    def now(self) -> float:
        """Current time in milliseconds."""
        raise NotImplementedError

    def call_later(self, delay_ms: float, callback: Callable, *args):
        """Schedule callback(*args); the returned handle has cancel()."""
        raise NotImplementedError


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._tasks: Set[asyncio.Task] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop or asyncio.get_running_loop()

    def now(self) -> float:
        return self.loop.time() * 1000

    def call_later(self, delay_ms: float, callback: Callable, *args) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay_ms, 0) / 1000, self._run, callback, args)

    def _run(self, callback: Callable, args: tuple) -> None:
        result = callback(*args)
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Scheduled callback failed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for callbacks that are currently running as tasks."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class ScheduledCall:
    """Handle for a callback registered with ManualScheduler."""

    def __init__(self, when: float, seq: int, callback: Callable, args: tuple):
        self.when = when
        self.seq = seq
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler(Scheduler):
    """
    Simulated clock for deterministic tests.

    Time only moves when advance() is awaited. Due callbacks run in order of
    their due time (ties in registration order) and the clock reads the due
    time while each one runs, so callbacks that reschedule themselves behave
    as they would in real time.
    """

    def __init__(self, start_ms: float = 0):
        self._now = start_ms
        self._calls: List[ScheduledCall] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable, *args) -> ScheduledCall:
        call = ScheduledCall(self._now + max(delay_ms, 0), next(self._seq), callback, args)
        self._calls.append(call)
        return call

    @property
    def pending(self) -> int:
        """Number of callbacks still waiting to run."""
        return sum(1 for call in self._calls if not call.cancelled)

    def _next_due(self, until: float) -> Optional[ScheduledCall]:
        self._calls = [call for call in self._calls if not call.cancelled]
        due = [call for call in self._calls if call.when <= until]
        if not due:
            return None
        return min(due, key=lambda call: (call.when, call.seq))

    async def advance(self, ms: float) -> None:
        """Move the clock forward by ms, running every callback that falls due."""
        target = self._now + ms
        while True:
            call = self._next_due(target)
            if call is None:
                break
            self._calls.remove(call)
            self._now = call.when
            result: Any = call.callback(*call.args)
            if inspect.isawaitable(result):
                await result
        self._now = target


class Debouncer:
    """Trailing-edge debounce: run callback once delay_ms after the last trigger."""

    def __init__(self, scheduler: Scheduler, delay_ms: float, callback: Callable):
        self.scheduler = scheduler
        self.delay_ms = delay_ms
        self.callback = callback
        self._handle = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        """(Re)start the quiet period."""
        self.cancel()
        self._handle = self.scheduler.call_later(self.delay_ms, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self):
        self._handle = None
        return self.callback()
