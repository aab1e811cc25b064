"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest  # type: ignore[import-not-found]

from time_clock.core.clock import ClockService
from time_clock.core.models import BreakPeriod, BreakType, EntryStatus, TimeEntry
from time_clock.core.storage import MemoryStore
from time_clock.engine.scheduler import VirtualScheduler
from time_clock.notifications.notifier import Notification, NotificationGateway

# Monday
START = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")


class RecordingNotifier(NotificationGateway):
    """Notifier that keeps every delivered notification."""

    def __init__(self) -> None:
        super().__init__()
        self.delivered: list[Notification] = []

    async def _deliver(self, notification: Notification) -> None:
        self.delivered.append(notification)

    @property
    def titles(self) -> list[str]:
        return [n.title for n in self.delivered]


def make_entry(
    clock_in: datetime,
    hours: Optional[float] = None,
    break_minutes: int = 0,
    user_id: str = "alice",
) -> TimeEntry:
    """Build an entry; completed with ``total_hours`` set when ``hours`` is given.

    ``hours`` is the net total; clock-out is placed after it plus the break.
    """
    entry = TimeEntry(user_id=user_id, clock_in=clock_in, created_at=clock_in, updated_at=clock_in)
    if break_minutes:
        start = clock_in + timedelta(hours=3)
        entry.breaks.append(
            BreakPeriod(
                type=BreakType.LUNCH,
                start_time=start,
                end_time=start + timedelta(minutes=break_minutes),
                duration=break_minutes,
            )
        )
    if hours is not None:
        entry.clock_out = clock_in + timedelta(hours=hours, minutes=break_minutes)
        entry.status = EntryStatus.COMPLETED
        entry.total_hours = hours
    return entry


@pytest.fixture  # type: ignore[misc]
def scheduler() -> VirtualScheduler:
    """Virtual scheduler starting Monday 2025-03-10 09:00 UTC."""
    return VirtualScheduler(START)


@pytest.fixture  # type: ignore[misc]
def clock(scheduler: VirtualScheduler) -> ClockService:
    """UTC clock following the virtual scheduler."""
    return ClockService(now_func=scheduler.now)


@pytest.fixture  # type: ignore[misc]
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture  # type: ignore[misc]
def notifier() -> RecordingNotifier:
    return RecordingNotifier()
