"""Timer scheduling for the session engine.

``AsyncioScheduler`` runs callbacks on the running event loop.
``VirtualScheduler`` keeps its own clock and only fires timers when
``advance`` is awaited, so reminders can be tested without sleeping.
"""

import asyncio
import heapq
import inspect
import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Callback = Callable[[], Any]


class CancelHandle:
    """Handle returned by the scheduler; ``cancel()`` is idempotent."""

    def __init__(self, on_cancel: Optional[Callable[[], None]] = None):
        self._on_cancel = on_cancel
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()


class Scheduler(ABC):
    """Schedule one-shot and recurring callbacks.

    Callbacks may be plain functions or coroutine functions. Exceptions raised
    by a callback are logged and do not stop recurring timers.
    """

    @abstractmethod
    def after(self, delay: timedelta, callback: Callback) -> CancelHandle:
        """Run ``callback`` once after ``delay``."""

    @abstractmethod
    def every(self, interval: timedelta, callback: Callback) -> CancelHandle:
        """Run ``callback`` every ``interval`` until cancelled."""

    @abstractmethod
    def pending_count(self) -> int:
        """Number of timers that are scheduled and not cancelled."""


async def _invoke(callback: Callback) -> None:
    try:
        result = callback()
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.exception(f"Scheduled callback {callback!r} failed")


class AsyncioScheduler(Scheduler):
    """Scheduler backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handles: set[CancelHandle] = set()
        self._tasks: set["asyncio.Task[None]"] = set()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def _spawn(self, callback: Callback) -> None:
        task = self.loop.create_task(_invoke(callback))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def after(self, delay: timedelta, callback: Callback) -> CancelHandle:
        timer: Optional[asyncio.TimerHandle] = None

        def on_cancel() -> None:
            self._handles.discard(handle)
            if timer is not None:
                timer.cancel()

        handle = CancelHandle(on_cancel)

        def fire() -> None:
            self._handles.discard(handle)
            if not handle.cancelled:
                handle.cancelled = True
                self._spawn(callback)

        timer = self.loop.call_later(delay.total_seconds(), fire)
        self._handles.add(handle)
        return handle

    def every(self, interval: timedelta, callback: Callback) -> CancelHandle:
        timer: Optional[asyncio.TimerHandle] = None

        def on_cancel() -> None:
            self._handles.discard(handle)
            if timer is not None:
                timer.cancel()

        handle = CancelHandle(on_cancel)

        def fire() -> None:
            nonlocal timer
            if handle.cancelled:
                return
            timer = self.loop.call_later(interval.total_seconds(), fire)
            self._spawn(callback)

        timer = self.loop.call_later(interval.total_seconds(), fire)
        self._handles.add(handle)
        return handle

    def pending_count(self) -> int:
        return len(self._handles)


class VirtualScheduler(Scheduler):
    """Deterministic scheduler driven by a virtual clock.

    Share ``now`` with a ClockService (``ClockService(now_func=scheduler.now)``)
    so that "now" and timer firing move together.
    """

    def __init__(self, start: datetime):
        if start.tzinfo is None:
            raise ValueError("VirtualScheduler needs a timezone-aware start time")
        self._now = start
        self._queue: list[tuple[datetime, int, "_VirtualTimer"]] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        return self._now

    def _push(self, timer: "_VirtualTimer") -> None:
        heapq.heappush(self._queue, (timer.due, next(self._seq), timer))

    def after(self, delay: timedelta, callback: Callback) -> CancelHandle:
        timer = _VirtualTimer(self._now + delay, callback, None)
        self._push(timer)
        return timer.handle

    def every(self, interval: timedelta, callback: Callback) -> CancelHandle:
        if interval <= timedelta(0):
            raise ValueError("Interval must be positive")
        timer = _VirtualTimer(self._now + interval, callback, interval)
        self._push(timer)
        return timer.handle

    def pending_count(self) -> int:
        return sum(1 for _, _, t in self._queue if not t.handle.cancelled)

    async def advance(self, delta: timedelta) -> int:
        """Move virtual time forward, firing due timers in order.

        Returns:
            Number of callbacks fired
        """
        target = self._now + delta
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            if timer.handle.cancelled:
                continue
            self._now = due
            if timer.interval is not None:
                timer.due = due + timer.interval
                self._push(timer)
            else:
                timer.handle.cancelled = True
            await _invoke(timer.callback)
            fired += 1
        self._now = target
        return fired

    async def set_time(self, when: datetime) -> int:
        """Advance virtual time to ``when`` (never backwards)."""
        if when < self._now:
            raise ValueError("Virtual time cannot move backwards")
        return await self.advance(when - self._now)


class _VirtualTimer:
    def __init__(self, due: datetime, callback: Callback, interval: Optional[timedelta]):
        self.due = due
        self.callback = callback
        self.interval = interval
        self.handle = CancelHandle()
