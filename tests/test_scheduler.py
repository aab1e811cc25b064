"""Tests for timer schedulers."""

import asyncio
from datetime import timedelta

import pytest  # type: ignore[import-not-found]

from conftest import START
from time_clock.engine.scheduler import AsyncioScheduler, CancelHandle, VirtualScheduler


class TestCancelHandle:
    """Test CancelHandle."""

    def test_cancel_is_idempotent(self) -> None:
        """Test the cancel hook runs once."""
        calls = []
        handle = CancelHandle(lambda: calls.append(1))

        handle.cancel()
        handle.cancel()

        assert handle.cancelled
        assert calls == [1]


class TestVirtualScheduler:
    """Test VirtualScheduler."""

    def test_requires_aware_start(self) -> None:
        """Test naive start times are rejected."""
        with pytest.raises(ValueError):
            VirtualScheduler(START.replace(tzinfo=None))

    def test_after_fires_once(self) -> None:
        """Test one-shot timers fire at their due time."""
        scheduler = VirtualScheduler(START)
        fired = []
        scheduler.after(timedelta(minutes=10), lambda: fired.append(scheduler.now()))

        assert asyncio.run(scheduler.advance(timedelta(minutes=9))) == 0
        assert asyncio.run(scheduler.advance(timedelta(minutes=30))) == 1
        assert fired == [START + timedelta(minutes=10)]
        assert scheduler.pending_count() == 0
        assert scheduler.now() == START + timedelta(minutes=39)

    def test_every_repeats_until_cancelled(self) -> None:
        """Test recurring timers and cancellation."""
        scheduler = VirtualScheduler(START)
        ticks = []

        async def tick() -> None:
            ticks.append(scheduler.now())

        handle = scheduler.every(timedelta(minutes=5), tick)

        assert asyncio.run(scheduler.advance(timedelta(minutes=16))) == 3
        handle.cancel()
        assert asyncio.run(scheduler.advance(timedelta(hours=1))) == 0
        assert len(ticks) == 3
        assert scheduler.pending_count() == 0

    def test_timers_fire_in_order(self) -> None:
        """Test callbacks run in due order across timers."""
        scheduler = VirtualScheduler(START)
        order = []
        scheduler.after(timedelta(minutes=20), lambda: order.append("b"))
        scheduler.after(timedelta(minutes=10), lambda: order.append("a"))

        asyncio.run(scheduler.advance(timedelta(hours=1)))

        assert order == ["a", "b"]

    def test_failing_callback_does_not_stop_timer(self) -> None:
        """Test a raising callback is logged and the timer keeps going."""
        scheduler = VirtualScheduler(START)

        def boom() -> None:
            raise RuntimeError("boom")

        scheduler.every(timedelta(minutes=1), boom)

        assert asyncio.run(scheduler.advance(timedelta(minutes=3))) == 3
        assert scheduler.pending_count() == 1

    def test_set_time_never_goes_back(self) -> None:
        """Test virtual time is monotonic."""
        scheduler = VirtualScheduler(START)

        with pytest.raises(ValueError):
            asyncio.run(scheduler.set_time(START - timedelta(seconds=1)))


class TestAsyncioScheduler:
    """Test AsyncioScheduler."""

    def test_after_and_cancel(self) -> None:
        """Test real timers fire and cancelled ones do not."""
        fired = []

        async def run() -> None:
            scheduler = AsyncioScheduler()
            scheduler.after(timedelta(milliseconds=10), lambda: fired.append("kept"))
            cancelled = scheduler.after(timedelta(milliseconds=10), lambda: fired.append("gone"))
            cancelled.cancel()
            assert scheduler.pending_count() == 1
            await asyncio.sleep(0.05)
            assert scheduler.pending_count() == 0

        asyncio.run(run())

        assert fired == ["kept"]

    def test_every(self) -> None:
        """Test recurring real timers."""
        ticks = []

        async def run() -> None:
            scheduler = AsyncioScheduler()
            handle = scheduler.every(timedelta(milliseconds=10), lambda: ticks.append(1))
            await asyncio.sleep(0.055)
            handle.cancel()
            assert scheduler.pending_count() == 0

        asyncio.run(run())

        assert len(ticks) >= 2
