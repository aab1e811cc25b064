"""Timezone-aware clock and calendar boundaries."""

from calendar import monthrange
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Iterable, Iterator, Optional, Union
from zoneinfo import ZoneInfo

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
DEFAULT_WORKING_DAYS = WEEKDAYS[:5]

DateLike = Union[date, datetime]


class ClockService:
    """Source of "now" plus day, week and month boundaries in a fixed timezone.

    All boundaries are returned as aware datetimes in the configured timezone.
    End-of-period values are the last microsecond of the period.
    """

    def __init__(
        self,
        timezone_name: str = "UTC",
        week_start: str = "monday",
        working_days: Optional[Iterable[str]] = None,
        holidays: Optional[Iterable[Union[str, date]]] = None,
        now_func: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize clock service.

        Args:
            timezone_name: IANA timezone name used for all calendar boundaries
            week_start: First day of the week ('monday' or 'sunday')
            working_days: Weekday names that count as working days
            holidays: Dates (or ISO strings) that are never working days
            now_func: Override for the current instant (virtual time in tests)
        """
        if week_start not in ("monday", "sunday"):
            raise ValueError(f"Invalid week start: {week_start}")
        self.tz = ZoneInfo(timezone_name)
        self.timezone_name = timezone_name
        self.week_start = week_start
        days = list(working_days) if working_days is not None else DEFAULT_WORKING_DAYS
        self.working_weekdays = {WEEKDAYS.index(d.lower()) for d in days}
        self.holidays: set[date] = {
            date.fromisoformat(h) if isinstance(h, str) else h for h in (holidays or [])
        }
        self._now_func = now_func

    @classmethod
    def from_config(cls, config: Any, now_func: Optional[Callable[[], datetime]] = None) -> "ClockService":
        """Build a clock service from a ConfigManager."""
        return cls(
            timezone_name=config.get("general.timezone", "UTC"),
            week_start=config.get("general.week_start", "monday"),
            working_days=config.get("calendar.working_days", DEFAULT_WORKING_DAYS),
            holidays=config.get("calendar.holidays", []),
            now_func=now_func,
        )

    def now(self) -> datetime:
        """Current instant in the configured timezone."""
        current = self._now_func() if self._now_func else datetime.now(timezone.utc)
        return self.localize(current)

    def localize(self, value: datetime) -> datetime:
        """Convert an instant to the configured timezone (naive values are taken as local)."""
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)

    def local_date(self, value: DateLike) -> date:
        """Calendar date of an instant in the configured timezone."""
        if isinstance(value, datetime):
            return self.localize(value).date()
        return value

    def today(self) -> date:
        return self.now().date()

    def start_of_day(self, value: DateLike) -> datetime:
        return datetime.combine(self.local_date(value), time.min, tzinfo=self.tz)

    def end_of_day(self, value: DateLike) -> datetime:
        return datetime.combine(self.local_date(value), time.max, tzinfo=self.tz)

    def week_start_date(self, value: DateLike) -> date:
        day = self.local_date(value)
        offset = day.weekday() if self.week_start == "monday" else (day.weekday() + 1) % 7
        return day - timedelta(days=offset)

    def start_of_week(self, value: DateLike) -> datetime:
        return self.start_of_day(self.week_start_date(value))

    def end_of_week(self, value: DateLike) -> datetime:
        return self.end_of_day(self.week_start_date(value) + timedelta(days=6))

    def start_of_month(self, value: DateLike) -> datetime:
        day = self.local_date(value)
        return self.start_of_day(day.replace(day=1))

    def end_of_month(self, value: DateLike) -> datetime:
        day = self.local_date(value)
        last = monthrange(day.year, day.month)[1]
        return self.end_of_day(day.replace(day=last))

    def is_same_day(self, first: DateLike, second: DateLike) -> bool:
        return self.local_date(first) == self.local_date(second)

    def is_holiday(self, value: DateLike) -> bool:
        return self.local_date(value) in self.holidays

    def is_working_day(self, value: DateLike) -> bool:
        """Check if a day is a configured working weekday and not a holiday."""
        day = self.local_date(value)
        return day.weekday() in self.working_weekdays and day not in self.holidays

    def iter_days(self, start: DateLike, end: DateLike) -> Iterator[date]:
        """Yield every calendar date from ``start`` to ``end`` inclusive."""
        current = self.local_date(start)
        last = self.local_date(end)
        while current <= last:
            yield current
            current += timedelta(days=1)
