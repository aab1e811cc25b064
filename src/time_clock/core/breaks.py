"""Break tracking within an active time entry.

A time entry is either in ``NO_BREAK`` or ``ON_BREAK(type)`` state. These
functions mutate the entry passed in; callers that need to keep the original
untouched should pass a copy.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from time_clock.core.errors import (
    AlreadyOnBreak,
    BreakLimitReached,
    InvalidBreakType,
    NoActiveBreak,
    NotClockedIn,
    ValidationError,
)
from time_clock.core.models import BreakPeriod, BreakStatistics, BreakType, TimeEntry

logger = logging.getLogger(__name__)

NO_BREAK = "NO_BREAK"
ON_BREAK = "ON_BREAK"


@dataclass(frozen=True)
class BreakTypeConfig:
    """Rules for one break type."""

    type: BreakType
    name: str
    default_duration: int
    is_paid: bool
    minimum_duration: int
    max_duration: int
    max_per_day: int


BREAK_TYPES: dict[BreakType, BreakTypeConfig] = {
    BreakType.LUNCH: BreakTypeConfig(BreakType.LUNCH, "Lunch Break", 60, False, 30, 120, 1),
    BreakType.SHORT: BreakTypeConfig(BreakType.SHORT, "Short Break", 15, True, 5, 30, 6),
    BreakType.EXTENDED: BreakTypeConfig(
        BreakType.EXTENDED, "Extended Break", 45, False, 30, 90, 2
    ),
}


def parse_break_type(value: Union[str, BreakType]) -> BreakType:
    """Resolve a break type name.

    Accepts the enum, its value ('short_break') or a short alias ('short').

    Raises:
        InvalidBreakType: If the name is not recognized
    """
    if isinstance(value, BreakType):
        return value
    key = str(value).strip().lower()
    for break_type in BreakType:
        if key in (break_type.value, break_type.value.removesuffix("_break")):
            return break_type
    raise InvalidBreakType(f"Invalid break type: {value}", {"break_type": value})


def break_state(entry: Optional[TimeEntry]) -> str:
    """Return ``NO_BREAK`` or ``ON_BREAK(<type>)`` for an entry."""
    current = entry.open_break if entry else None
    if current is None:
        return NO_BREAK
    return f"{ON_BREAK}({current.type.value})"


def is_on_break(entry: Optional[TimeEntry]) -> bool:
    return entry is not None and entry.open_break is not None


def _round_minutes(start: datetime, end: datetime) -> int:
    minutes = (end - start).total_seconds() / 60
    return max(0, int(math.floor(minutes + 0.5)))


def start_break(
    entry: Optional[TimeEntry], break_type: Union[str, BreakType], now: datetime
) -> BreakPeriod:
    """Open a new break on an active entry.

    Args:
        entry: Active time entry (None if not clocked in)
        break_type: Type of break to start
        now: Break start instant

    Returns:
        The newly opened break period

    Raises:
        NotClockedIn: If there is no active entry
        AlreadyOnBreak: If a break is already open
        InvalidBreakType: If the break type is unknown
        BreakLimitReached: If the daily limit for the type is used up
        ValidationError: If ``now`` precedes clock-in or the previous break
    """
    if entry is None or not entry.is_active:
        raise NotClockedIn()
    current = entry.open_break
    if current is not None:
        raise AlreadyOnBreak(context={"break_id": current.id, "break_type": current.type.value})

    resolved = parse_break_type(break_type)
    config = BREAK_TYPES[resolved]

    taken = sum(1 for b in entry.breaks if b.type == resolved)
    if taken >= config.max_per_day:
        raise BreakLimitReached(
            f"Maximum {config.max_per_day} {config.name.lower()} per day already taken",
            {"break_type": resolved.value, "max_per_day": config.max_per_day},
        )

    if now < entry.clock_in:
        raise ValidationError("Break cannot start before clock-in", {"entry_id": entry.id})
    if entry.breaks and entry.breaks[-1].end_time and now < entry.breaks[-1].end_time:
        raise ValidationError(
            "Break cannot start before the previous break ended", {"entry_id": entry.id}
        )

    period = BreakPeriod(type=resolved, start_time=now, is_paid=config.is_paid)
    entry.breaks.append(period)
    entry.updated_at = now
    logger.debug(f"Started {resolved.value} break {period.id} on entry {entry.id}")
    return period


def end_break(entry: Optional[TimeEntry], now: datetime) -> BreakPeriod:
    """Close the open break on an entry.

    Duration is rounded to the nearest whole minute.

    Raises:
        NoActiveBreak: If no break is open
        ValidationError: If ``now`` precedes the break start
    """
    current = entry.open_break if entry else None
    if entry is None or current is None:
        raise NoActiveBreak()
    if now < current.start_time:
        raise ValidationError("Break cannot end before it started", {"break_id": current.id})

    current.end_time = now
    current.duration = _round_minutes(current.start_time, now)
    entry.updated_at = now

    config = BREAK_TYPES[current.type]
    if current.duration > config.max_duration:
        logger.warning(
            f"Break {current.id} lasted {current.duration} minutes, "
            f"over the {config.max_duration} minute maximum for {config.name.lower()}"
        )
    return current


def auto_complete_breaks(entry: TimeEntry, now: datetime) -> list[BreakPeriod]:
    """Force-close any open break at ``now``.

    Runs as part of clock-out so an entry never closes with a dangling break.

    Returns:
        Breaks that were closed
    """
    closed = []
    for period in entry.breaks:
        if period.is_open:
            end = max(now, period.start_time)
            period.end_time = end
            period.duration = _round_minutes(period.start_time, end)
            closed.append(period)
            logger.info(f"Auto-completed break {period.id} on entry {entry.id}")
    if closed:
        entry.updated_at = now
    return closed


def calculate_break_statistics(breaks: list[BreakPeriod]) -> BreakStatistics:
    """Aggregate statistics over the closed breaks in ``breaks``."""
    completed = [b for b in breaks if not b.is_open]
    if not completed:
        return BreakStatistics()

    durations = [b.duration or 0 for b in completed]
    total = sum(durations)
    paid = sum(b.duration or 0 for b in completed if b.is_paid)
    unpaid = total - paid
    by_type: dict[str, int] = {}
    for period in completed:
        by_type[period.type.value] = by_type.get(period.type.value, 0) + (period.duration or 0)

    work_minutes = 8 * 60
    efficiency = max(0.0, (work_minutes - unpaid) / work_minutes * 100)

    return BreakStatistics(
        total_breaks=len(completed),
        total_minutes=total,
        paid_minutes=paid,
        unpaid_minutes=unpaid,
        average_minutes=total / len(completed),
        longest_minutes=max(durations),
        shortest_minutes=min(durations),
        by_type=by_type,
        break_efficiency=round(efficiency, 2),
    )
