"""Core data models for time clock entries, policies and summaries."""

import copy
from dataclasses import asdict, dataclass, field, fields, replace
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from time_clock.core.errors import ValidationError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class EntryStatus(Enum):
    """Lifecycle status of a time entry."""

    ACTIVE = "active"
    COMPLETED = "completed"
    CONFLICT = "conflict"


class BreakType(Enum):
    """Recognized break types."""

    LUNCH = "lunch"
    SHORT = "short_break"
    EXTENDED = "extended_break"


class DayStatus(Enum):
    """Classification of a single day's work."""

    ABSENT = "absent"
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"
    OVERTIME = "overtime"


class Trend(Enum):
    """Direction of a series of daily values."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass
class BreakPeriod:
    """A labeled pause nested inside a time entry.

    Attributes:
        type: Break type
        start_time: When the break started
        id: Unique identifier
        end_time: When the break ended (None while open)
        duration: Break length in whole minutes (set on close)
        is_paid: Whether the break counts as paid time
    """

    type: BreakType
    start_time: datetime
    id: str = field(default_factory=_new_id)
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    is_paid: bool = False

    @property
    def is_open(self) -> bool:
        """Check if the break has not ended yet."""
        return self.end_time is None

    def minutes_until(self, now: datetime) -> float:
        """Minutes elapsed in this break, counting an open break up to ``now``."""
        if self.duration is not None:
            return float(self.duration)
        end = self.end_time or now
        return max(0.0, (end - self.start_time).total_seconds() / 60)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": self.type.value,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "is_paid": self.is_paid,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BreakPeriod":
        """Create BreakPeriod from dictionary."""
        return cls(
            id=data["id"],
            type=BreakType(data["type"]),
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=_parse_dt(data.get("end_time")),
            duration=data.get("duration"),
            is_paid=bool(data.get("is_paid", False)),
        )


@dataclass
class TimeEntry:
    """One continuous work session for one user.

    Attributes:
        user_id: Owner of the entry
        clock_in: Clock-in instant (timezone-aware)
        id: Unique identifier
        clock_out: Clock-out instant (None while active)
        breaks: Ordered break periods
        status: Lifecycle status
        total_hours: Worked hours net of breaks (frozen on close)
        regular_hours: Hours up to the standard work day
        overtime_hours: Hours paid at the overtime rate
        double_overtime_hours: Hours paid at the double overtime rate
        notes: Free-text notes
        auto_closed: Whether the entry was closed by stale-entry maintenance
        flag_reason: Why the entry was flagged (duplicate active entries etc.)
        created_at: When this record was created
        updated_at: Last update time
    """

    user_id: str
    clock_in: datetime
    id: str = field(default_factory=_new_id)
    clock_out: Optional[datetime] = None
    breaks: list[BreakPeriod] = field(default_factory=list)
    status: EntryStatus = EntryStatus.ACTIVE
    total_hours: Optional[float] = None
    regular_hours: Optional[float] = None
    overtime_hours: Optional[float] = None
    double_overtime_hours: Optional[float] = None
    notes: Optional[str] = None
    auto_closed: bool = False
    flag_reason: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @property
    def is_active(self) -> bool:
        """Check if this entry is still open."""
        return self.status == EntryStatus.ACTIVE and self.clock_out is None

    @property
    def open_break(self) -> Optional[BreakPeriod]:
        """The currently open break, if any."""
        for period in self.breaks:
            if period.is_open:
                return period
        return None

    @property
    def break_minutes(self) -> int:
        """Total minutes of closed breaks."""
        return sum(b.duration or 0 for b in self.breaks if not b.is_open)

    def elapsed_hours(self, now: Optional[datetime] = None) -> float:
        """Wall-clock hours between clock-in and clock-out (or ``now``)."""
        end = self.clock_out or now or _utcnow()
        return max(0.0, (end - self.clock_in).total_seconds() / 3600)

    def compute_total_hours(self, now: Optional[datetime] = None) -> float:
        """Elapsed hours minus all break minutes, floored at zero."""
        end = self.clock_out or now or _utcnow()
        break_min = sum(b.minutes_until(end) for b in self.breaks)
        return max(0.0, self.elapsed_hours(end) - break_min / 60)

    def snapshot(self, now: datetime) -> "TimeEntry":
        """Return a copy of this entry with live totals computed up to ``now``.

        Completed entries are returned as an unchanged copy.
        """
        entry = copy.deepcopy(self)
        if entry.is_active:
            entry.total_hours = entry.compute_total_hours(now)
        return entry

    def validate(self) -> None:
        """Check entry invariants.

        Raises:
            ValidationError: If clock-out or breaks are inconsistent
        """
        if self.clock_in.tzinfo is None:
            raise ValidationError("Clock-in time must be timezone-aware", {"entry_id": self.id})
        if self.clock_out is not None and self.clock_out <= self.clock_in:
            raise ValidationError(
                "Clock-out must be after clock-in",
                {"entry_id": self.id, "clock_in": self.clock_in.isoformat()},
            )

        open_count = sum(1 for b in self.breaks if b.is_open)
        if open_count > 1:
            raise ValidationError("Only one break may be open at a time", {"entry_id": self.id})
        if open_count and self.clock_out is not None:
            raise ValidationError("A closed entry cannot have an open break", {"entry_id": self.id})

        previous_end: Optional[datetime] = None
        for period in self.breaks:
            if period.start_time < self.clock_in:
                raise ValidationError("Break starts before clock-in", {"break_id": period.id})
            if previous_end is not None and period.start_time < previous_end:
                raise ValidationError("Breaks must not overlap", {"break_id": period.id})
            if period.end_time is not None:
                if period.end_time < period.start_time:
                    raise ValidationError("Break ends before it starts", {"break_id": period.id})
                if self.clock_out is not None and period.end_time > self.clock_out:
                    raise ValidationError("Break ends after clock-out", {"break_id": period.id})
            previous_end = period.end_time

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "clock_in": self.clock_in.isoformat(),
            "clock_out": self.clock_out.isoformat() if self.clock_out else None,
            "breaks": [b.to_dict() for b in self.breaks],
            "status": self.status.value,
            "total_hours": self.total_hours,
            "regular_hours": self.regular_hours,
            "overtime_hours": self.overtime_hours,
            "double_overtime_hours": self.double_overtime_hours,
            "notes": self.notes,
            "auto_closed": self.auto_closed,
            "flag_reason": self.flag_reason,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeEntry":
        """Create TimeEntry from dictionary (JSON deserialization)."""
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            clock_in=datetime.fromisoformat(data["clock_in"]),
            clock_out=_parse_dt(data.get("clock_out")),
            breaks=[BreakPeriod.from_dict(b) for b in data.get("breaks", [])],
            status=EntryStatus(data.get("status", EntryStatus.ACTIVE.value)),
            total_hours=data.get("total_hours"),
            regular_hours=data.get("regular_hours"),
            overtime_hours=data.get("overtime_hours"),
            double_overtime_hours=data.get("double_overtime_hours"),
            notes=data.get("notes"),
            auto_closed=bool(data.get("auto_closed", False)),
            flag_reason=data.get("flag_reason"),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


@dataclass(frozen=True)
class OvertimePolicy:
    """Overtime thresholds, rates and caps.

    Immutable per evaluation; use ``with_overrides`` for per-call changes.
    """

    standard_work_hours: float = 8.0
    overtime_threshold: float = 8.0
    overtime_rate: float = 1.25
    double_overtime_threshold: Optional[float] = 12.0
    double_overtime_rate: Optional[float] = 1.5
    max_overtime_per_day: Optional[float] = 4.0
    max_overtime_per_week: float = 20.0
    rest_day_rate: float = 1.5
    holiday_rate: float = 2.0

    def with_overrides(self, **overrides: Any) -> "OvertimePolicy":
        """Return a copy with the given fields replaced."""
        return replace(self, **overrides)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OvertimePolicy":
        """Create policy from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_config(cls, config: Any) -> "OvertimePolicy":
        """Create policy from the ``policy`` section of a ConfigManager."""
        return cls.from_dict(config.get("policy", {}) or {})


@dataclass
class OvertimeSplit:
    """Per-entry split of worked hours into pay tiers."""

    regular_hours: float
    overtime_hours: float
    double_overtime_hours: float
    earnings: "Earnings"


@dataclass
class Earnings:
    """Pay computed from hours and an hourly rate."""

    regular_pay: float = 0.0
    overtime_pay: float = 0.0
    double_overtime_pay: float = 0.0

    @property
    def total_pay(self) -> float:
        return self.regular_pay + self.overtime_pay + self.double_overtime_pay

    def __add__(self, other: "Earnings") -> "Earnings":
        return Earnings(
            regular_pay=self.regular_pay + other.regular_pay,
            overtime_pay=self.overtime_pay + other.overtime_pay,
            double_overtime_pay=self.double_overtime_pay + other.double_overtime_pay,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "regular_pay": self.regular_pay,
            "overtime_pay": self.overtime_pay,
            "double_overtime_pay": self.double_overtime_pay,
            "total_pay": self.total_pay,
        }


@dataclass
class BreakStatistics:
    """Aggregate statistics over closed breaks."""

    total_breaks: int = 0
    total_minutes: int = 0
    paid_minutes: int = 0
    unpaid_minutes: int = 0
    average_minutes: float = 0.0
    longest_minutes: int = 0
    shortest_minutes: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    break_efficiency: float = 100.0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DailyWorkSummary:
    """Derived summary of one calendar day.

    Attributes:
        date: Local calendar date
        is_working_day: Whether the day counts toward goals
        goal_hours: Target hours (0 on non-working days)
        total_hours: Sum of entry totals
        regular_hours: Sum of regular hours
        overtime_hours: Sum of overtime hours
        double_overtime_hours: Sum of double overtime hours
        break_minutes: Sum of break minutes
        net_work_hours: total_hours minus break time
        completion_percentage: net_work_hours / goal_hours * 100
        efficiency: net_work_hours / total_hours * 100, clamped to [0, 100]
        status: Day classification
        entry_count: Number of entries on the day
        first_clock_in: Earliest clock-in
        last_clock_out: Latest clock-out
        projected_finish: Straight-line finish estimate when incomplete
        earnings: Pay for the day (only when an hourly rate was given)
    """

    date: date
    is_working_day: bool
    goal_hours: float
    is_holiday: bool = False
    total_hours: float = 0.0
    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    double_overtime_hours: float = 0.0
    break_minutes: int = 0
    net_work_hours: float = 0.0
    completion_percentage: float = 0.0
    efficiency: float = 0.0
    status: DayStatus = DayStatus.INCOMPLETE
    entry_count: int = 0
    first_clock_in: Optional[datetime] = None
    last_clock_out: Optional[datetime] = None
    projected_finish: Optional[datetime] = None
    earnings: Optional[Earnings] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "is_working_day": self.is_working_day,
            "is_holiday": self.is_holiday,
            "goal_hours": self.goal_hours,
            "total_hours": self.total_hours,
            "regular_hours": self.regular_hours,
            "overtime_hours": self.overtime_hours,
            "double_overtime_hours": self.double_overtime_hours,
            "break_minutes": self.break_minutes,
            "net_work_hours": self.net_work_hours,
            "completion_percentage": self.completion_percentage,
            "efficiency": self.efficiency,
            "status": self.status.value,
            "entry_count": self.entry_count,
            "first_clock_in": self.first_clock_in.isoformat() if self.first_clock_in else None,
            "last_clock_out": self.last_clock_out.isoformat() if self.last_clock_out else None,
            "projected_finish": (
                self.projected_finish.isoformat() if self.projected_finish else None
            ),
            "earnings": self.earnings.to_dict() if self.earnings else None,
        }


@dataclass
class WeeklyWorkSummary:
    """Derived summary of a calendar week (seven daily summaries)."""

    week_start: date
    week_end: date
    days: list[DailyWorkSummary]
    total_hours: float = 0.0
    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    double_overtime_hours: float = 0.0
    break_minutes: int = 0
    net_work_hours: float = 0.0
    working_days: int = 0
    days_worked: int = 0
    average_daily_hours: float = 0.0
    overtime_occurrences: int = 0
    goal_hours: float = 0.0
    completion_percentage: float = 0.0
    most_productive_day: str = "N/A"
    least_productive_day: str = "N/A"
    overtime_cap_exceeded: bool = False
    earnings: Optional[Earnings] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "week_start": self.week_start.isoformat(),
            "week_end": self.week_end.isoformat(),
            "days": [d.to_dict() for d in self.days],
            "total_hours": self.total_hours,
            "regular_hours": self.regular_hours,
            "overtime_hours": self.overtime_hours,
            "double_overtime_hours": self.double_overtime_hours,
            "break_minutes": self.break_minutes,
            "net_work_hours": self.net_work_hours,
            "working_days": self.working_days,
            "days_worked": self.days_worked,
            "average_daily_hours": self.average_daily_hours,
            "overtime_occurrences": self.overtime_occurrences,
            "goal_hours": self.goal_hours,
            "completion_percentage": self.completion_percentage,
            "most_productive_day": self.most_productive_day,
            "least_productive_day": self.least_productive_day,
            "overtime_cap_exceeded": self.overtime_cap_exceeded,
            "earnings": self.earnings.to_dict() if self.earnings else None,
        }


@dataclass
class MonthlyWorkSummary:
    """Derived summary of a calendar month.

    ``weeks`` holds every week intersecting the month; the totals only count
    days inside the month.
    """

    year: int
    month: int
    weeks: list[WeeklyWorkSummary]
    total_hours: float = 0.0
    regular_hours: float = 0.0
    overtime_hours: float = 0.0
    double_overtime_hours: float = 0.0
    break_minutes: int = 0
    net_work_hours: float = 0.0
    working_days: int = 0
    days_worked: int = 0
    average_daily_hours: float = 0.0
    overtime_occurrences: int = 0
    goal_hours: float = 0.0
    completion_percentage: float = 0.0
    earnings: Optional[Earnings] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "weeks": [w.to_dict() for w in self.weeks],
            "total_hours": self.total_hours,
            "regular_hours": self.regular_hours,
            "overtime_hours": self.overtime_hours,
            "double_overtime_hours": self.double_overtime_hours,
            "break_minutes": self.break_minutes,
            "net_work_hours": self.net_work_hours,
            "working_days": self.working_days,
            "days_worked": self.days_worked,
            "average_daily_hours": self.average_daily_hours,
            "overtime_occurrences": self.overtime_occurrences,
            "goal_hours": self.goal_hours,
            "completion_percentage": self.completion_percentage,
            "earnings": self.earnings.to_dict() if self.earnings else None,
        }


@dataclass
class WorkProgressMetrics:
    """Behavioral statistics over a range of daily summaries."""

    start_date: date
    end_date: date
    current_streak: int = 0
    longest_streak: int = 0
    average_arrival_time: str = "N/A"
    average_departure_time: str = "N/A"
    punctuality_rate: float = 0.0
    break_compliance: float = 100.0
    overtime_trend: Trend = Trend.STABLE
    productivity_trend: Trend = Trend.STABLE
    total_days_worked: int = 0
    days_analyzed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "average_arrival_time": self.average_arrival_time,
            "average_departure_time": self.average_departure_time,
            "punctuality_rate": self.punctuality_rate,
            "break_compliance": self.break_compliance,
            "overtime_trend": self.overtime_trend.value,
            "productivity_trend": self.productivity_trend.value,
            "total_days_worked": self.total_days_worked,
            "days_analyzed": self.days_analyzed,
        }


@dataclass
class SessionRecord:
    """Summary of one engine session, flushed to storage on shutdown."""

    user_id: str
    start_time: datetime
    id: str = field(default_factory=_new_id)
    end_time: Optional[datetime] = None
    total_work_hours: float = 0.0
    total_break_minutes: int = 0
    entry_ids: list[str] = field(default_factory=list)
    status: str = "active"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "total_work_hours": self.total_work_hours,
            "total_break_minutes": self.total_break_minutes,
            "entry_ids": list(self.entry_ids),
            "status": self.status,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SessionRecord":
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=_parse_dt(data.get("end_time")),
            total_work_hours=float(data.get("total_work_hours", 0.0)),
            total_break_minutes=int(data.get("total_break_minutes", 0)),
            entry_ids=list(data.get("entry_ids", [])),
            status=data.get("status", "active"),
        )
