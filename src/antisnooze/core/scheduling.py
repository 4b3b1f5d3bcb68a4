"""Cancellable timers on a single scheduling context.

Every component of the engine schedules its timers through a `Scheduler`. The
`AsyncioScheduler` drives a live process from one asyncio event loop, while the
`VirtualScheduler` runs on a manual clock so that tests and replay runs are
deterministic.
"""

import abc
import asyncio
import datetime
import heapq
import itertools
from typing import Callable, List, Optional, Tuple

from antisnooze.core import config

logger = config.get_logger()

Callback = Callable[[], None]


class TimerHandle:
    """Handle to a scheduled callback."""

    def __init__(self, on_cancel: Optional[Callback] = None) -> None:
        """Initialize the handle.

        Args:
            on_cancel: Hook run once when the handle is cancelled, used by
                schedulers that need to release an underlying timer.
        """
        self._cancelled = False
        self._on_cancel = on_cancel

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._cancelled

    def cancel(self) -> None:
        """Cancel the callback. Cancelling twice is a no-op."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()


class _RepeatingTimer(TimerHandle):
    """Re-arms a one-shot timer after each expiry until cancelled."""

    def __init__(
        self, scheduler: "Scheduler", interval: float, callback: Callback
    ) -> None:
        super().__init__()
        self._scheduler = scheduler
        self._interval = interval
        self._callback = callback
        self._inner = scheduler.call_later(interval, self._tick)

    def _tick(self) -> None:
        if self.cancelled:
            return
        self._inner = self._scheduler.call_later(self._interval, self._tick)
        self._callback()

    def cancel(self) -> None:
        super().cancel()
        self._inner.cancel()


class Scheduler(abc.ABC):
    """Interface of a single-threaded timer scheduling context."""

    @abc.abstractmethod
    def now(self) -> datetime.datetime:
        """Current time of this scheduling context."""
        pass

    @abc.abstractmethod
    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Run callback once, delay seconds from now.

        Negative delays are treated as zero.
        """
        pass

    def call_at(self, when: datetime.datetime, callback: Callback) -> TimerHandle:
        """Run callback once at the given time, or as soon as possible if past."""
        delay = (when - self.now()).total_seconds()
        return self.call_later(max(delay, 0.0), callback)

    def call_repeating(self, interval: float, callback: Callback) -> TimerHandle:
        """Run callback every interval seconds until the handle is cancelled.

        Raises:
            ValueError: If interval is not positive.
        """
        if interval <= 0:
            raise ValueError("Repeating interval must be greater than 0.")
        return _RepeatingTimer(self, interval, callback)


class VirtualScheduler(Scheduler):
    """Scheduler on a manually advanced clock.

    Callbacks only run inside advance() or advance_to(). Callbacks due at the
    same instant run in the order they were scheduled.
    """

    def __init__(self, start: datetime.datetime) -> None:
        """Initialize the scheduler.

        Args:
            start: The initial time of the virtual clock.
        """
        self._now = start
        self._counter = itertools.count()
        self._queue: List[
            Tuple[datetime.datetime, int, TimerHandle, Callback]
        ] = []

    def now(self) -> datetime.datetime:
        """Current virtual time."""
        return self._now

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Queue callback to run delay virtual seconds from now."""
        handle = TimerHandle()
        when = self._now + datetime.timedelta(seconds=max(delay, 0.0))
        heapq.heappush(self._queue, (when, next(self._counter), handle, callback))
        return handle

    @property
    def pending(self) -> int:
        """Number of queued callbacks that have not been cancelled."""
        return sum(1 for _, _, handle, _ in self._queue if not handle.cancelled)

    def next_due(self) -> Optional[datetime.datetime]:
        """Time of the next live callback, or None if nothing is queued."""
        for when, _, handle, _ in sorted(self._queue):
            if not handle.cancelled:
                return when
        return None

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every callback that becomes due."""
        self.advance_to(self._now + datetime.timedelta(seconds=seconds))

    def advance_to(self, when: datetime.datetime) -> None:
        """Move the clock to when, running every callback due until then.

        Callbacks scheduled by other callbacks are run as well if they fall due
        before when.
        """
        while self._queue and self._queue[0][0] <= when:
            due, _, handle, callback = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = max(self._now, due)
            callback()
        self._now = max(self._now, when)


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop and the wall clock."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        """Initialize the scheduler.

        Args:
            loop: The event loop every callback runs on. Defaults to the running
                loop.
        """
        self._loop = loop if loop is not None else asyncio.get_running_loop()

    def now(self) -> datetime.datetime:
        """Current wall-clock time."""
        return datetime.datetime.now()

    def call_later(self, delay: float, callback: Callback) -> TimerHandle:
        """Schedule callback on the event loop."""
        loop_handle = self._loop.call_later(max(delay, 0.0), callback)
        return TimerHandle(on_cancel=loop_handle.cancel)
