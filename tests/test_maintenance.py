"""Tests for stale entry maintenance."""

import asyncio
from datetime import timedelta

import pytest  # type: ignore[import-not-found]

from conftest import START, RecordingNotifier
from time_clock.core.clock import ClockService
from time_clock.core.models import BreakPeriod, BreakType, EntryStatus, TimeEntry
from time_clock.core.storage import MemoryStore
from time_clock.engine.maintenance import auto_close_stale_entries


class TestAutoCloseStaleEntries:
    """Test auto_close_stale_entries."""

    def test_closes_only_stale_entries(
        self, store: MemoryStore, clock: ClockService, notifier: RecordingNotifier
    ) -> None:
        """Test entries open past the limit are closed after a standard day."""
        stale = TimeEntry(user_id="alice", clock_in=START - timedelta(hours=30))
        fresh = TimeEntry(user_id="bob", clock_in=START - timedelta(hours=2))

        async def run() -> None:
            await store.save_entry(stale)
            await store.save_entry(fresh)

            closed = await auto_close_stale_entries(store, clock, notifier)

            assert [e.id for e in closed] == [stale.id]
            entry = await store.find_by_id(stale.id)
            assert entry.status == EntryStatus.COMPLETED
            assert entry.auto_closed
            assert entry.clock_out == stale.clock_in + timedelta(hours=8)
            assert entry.total_hours == pytest.approx(8.0)
            assert "Automatically closed after 24 hours open" in entry.notes
            assert (await store.find_by_id(fresh.id)).is_active

        asyncio.run(run())

        assert notifier.titles == ["Session Auto-Closed"]
        assert notifier.delivered[0].user_id == "alice"

    def test_close_never_precedes_break_activity(
        self, store: MemoryStore, clock: ClockService
    ) -> None:
        """Test clock-out is moved past a late break."""
        entry = TimeEntry(user_id="alice", clock_in=START - timedelta(hours=30))
        break_start = entry.clock_in + timedelta(hours=9)
        entry.breaks.append(
            BreakPeriod(
                type=BreakType.SHORT,
                start_time=break_start,
                end_time=break_start + timedelta(minutes=30),
                duration=30,
            )
        )

        async def run() -> None:
            await store.save_entry(entry)
            closed = await auto_close_stale_entries(store, clock)

            assert closed[0].clock_out == break_start + timedelta(minutes=30)
            assert closed[0].total_hours == pytest.approx(9.0)

        asyncio.run(run())

    def test_open_break_is_completed(self, store: MemoryStore, clock: ClockService) -> None:
        """Test an abandoned open break is closed with the entry."""
        entry = TimeEntry(user_id="alice", clock_in=START - timedelta(hours=30))
        entry.breaks.append(
            BreakPeriod(type=BreakType.LUNCH, start_time=entry.clock_in + timedelta(hours=4))
        )

        async def run() -> None:
            await store.save_entry(entry)
            closed = await auto_close_stale_entries(store, clock)

            assert closed[0].open_break is None
            assert closed[0].breaks[0].duration == 240

        asyncio.run(run())

    def test_short_max_age_caps_close_time(self, store: MemoryStore, clock: ClockService) -> None:
        """Test the close time never passes clock-in plus the age limit."""
        entry = TimeEntry(user_id="alice", clock_in=START - timedelta(hours=7))

        async def run() -> None:
            await store.save_entry(entry)
            closed = await auto_close_stale_entries(store, clock, max_age=timedelta(hours=6))

            assert closed[0].clock_out == entry.clock_in + timedelta(hours=6)
            assert "after 6 hours open" in closed[0].notes

        asyncio.run(run())

    def test_nothing_to_close(self, store: MemoryStore, clock: ClockService) -> None:
        """Test an empty store."""
        assert asyncio.run(auto_close_stale_entries(store, clock)) == []
