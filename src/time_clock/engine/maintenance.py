"""Scheduled corrective actions on stored entries."""

import logging
from datetime import timedelta
from typing import Optional

from time_clock.core.clock import ClockService
from time_clock.core.models import OvertimePolicy, TimeEntry
from time_clock.core.storage import StorageGateway
from time_clock.notifications.notifier import NotificationGateway, Severity

logger = logging.getLogger(__name__)

STALE_AFTER = timedelta(hours=24)


async def auto_close_stale_entries(
    store: StorageGateway,
    clock: ClockService,
    notifier: Optional[NotificationGateway] = None,
    max_age: timedelta = STALE_AFTER,
    policy: Optional[OvertimePolicy] = None,
) -> list[TimeEntry]:
    """Close open entries that clocked in more than ``max_age`` ago.

    Abandoned entries are closed at clock-in plus the standard work day (never
    past the staleness cutoff), marked ``auto_closed`` and the owner is told
    what happened. This is a corrective action, not an error.

    Returns:
        The entries that were closed
    """
    policy = policy or OvertimePolicy()
    now = clock.now()
    cutoff = now - max_age
    closed = []

    for stale in await store.find_stale_entries(cutoff):
        close_at = min(
            stale.clock_in + timedelta(hours=policy.standard_work_hours),
            stale.clock_in + max_age,
        )
        if stale.breaks:
            # Clock-out may not precede recorded break activity
            close_at = max(close_at, max(b.end_time or b.start_time for b in stale.breaks))
        try:
            entry = await store.close_entry(
                stale.id,
                close_at,
                policy,
                f"Automatically closed after {int(max_age.total_seconds() // 3600)} hours open",
            )
        except Exception as e:
            logger.error(f"Could not auto-close stale entry {stale.id}: {e}")
            continue

        entry.auto_closed = True
        await store.save_entry(entry)
        closed.append(entry)
        logger.info(f"Auto-closed stale entry {entry.id} for {entry.user_id}")

        if notifier is not None:
            local_in = clock.localize(entry.clock_in)
            await notifier.notify(
                entry.user_id,
                "Session Auto-Closed",
                f"Your session from {local_in:%Y-%m-%d %I:%M %p} was left open for more "
                f"than {int(max_age.total_seconds() // 3600)} hours and has been closed "
                f"at {clock.localize(close_at):%I:%M %p}. Please review it.",
                Severity.WARNING,
            )
    return closed
