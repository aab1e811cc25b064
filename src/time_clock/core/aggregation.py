"""Work-time aggregation and overtime calculation.

Pure functions: every result depends only on the entries, the policy, the
hourly rate and the calendar passed in. "Today" is only consulted where a
function says so (streaks and the ``*_progress`` helpers).
"""

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Sequence, Union

from time_clock.core.breaks import auto_complete_breaks
from time_clock.core.clock import ClockService
from time_clock.core.models import (
    DailyWorkSummary,
    DayStatus,
    Earnings,
    EntryStatus,
    MonthlyWorkSummary,
    OvertimePolicy,
    OvertimeSplit,
    TimeEntry,
    Trend,
    WeeklyWorkSummary,
    WorkProgressMetrics,
)

DEFAULT_POLICY = OvertimePolicy()

# Arrivals at or before 09:30 local time count as on time
PUNCTUALITY_CUTOFF = (9, 30)

# Daily break totals inside this range (minutes) are compliant
BREAK_COMPLIANCE_RANGE = (30, 90)

TREND_THRESHOLD = 0.1
TREND_MIN_POINTS = 3

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def calculate_entry_overtime(
    entry: TimeEntry, policy: Optional[OvertimePolicy] = None, hourly_rate: float = 0.0
) -> OvertimeSplit:
    """Split one entry's hours into regular, overtime and double overtime.

    Double overtime is taken first and capped by ``max_overtime_per_day``; the
    rest of the excess above the overtime threshold is simple overtime. When
    there is no double overtime, simple overtime is capped instead.

    Args:
        entry: Time entry (``total_hours`` of None counts as zero)
        policy: Overtime policy, defaults to the standard policy
        hourly_rate: Base hourly pay rate

    Returns:
        Hours split plus earnings at ``hourly_rate``
    """
    policy = policy or DEFAULT_POLICY
    total = entry.total_hours or 0.0
    cap = policy.max_overtime_per_day or 4.0

    regular = min(total, policy.standard_work_hours)
    overtime = 0.0
    double_overtime = 0.0

    if total > policy.overtime_threshold:
        excess = total - policy.overtime_threshold
        double_threshold = policy.double_overtime_threshold
        if double_threshold and total > double_threshold:
            double_overtime = min(total - double_threshold, cap)
            overtime = excess - double_overtime
        else:
            overtime = min(excess, cap)

    double_rate = policy.double_overtime_rate or 1.5
    earnings = Earnings(
        regular_pay=regular * hourly_rate,
        overtime_pay=overtime * hourly_rate * policy.overtime_rate,
        double_overtime_pay=double_overtime * hourly_rate * double_rate if double_overtime else 0.0,
    )
    return OvertimeSplit(
        regular_hours=regular,
        overtime_hours=overtime,
        double_overtime_hours=double_overtime,
        earnings=earnings,
    )


def finalize_entry(
    entry: TimeEntry,
    clock_out: datetime,
    policy: Optional[OvertimePolicy] = None,
    notes: Optional[str] = None,
) -> TimeEntry:
    """Close an entry in place and freeze its totals.

    Open breaks are auto-completed at ``clock_out`` first. ``total_hours`` is
    elapsed time minus every break minute.

    Raises:
        ValidationError: If ``clock_out`` is not after clock-in
    """
    auto_complete_breaks(entry, clock_out)
    entry.clock_out = clock_out
    entry.status = EntryStatus.COMPLETED
    if notes:
        entry.notes = f"{entry.notes}\n{notes}" if entry.notes else notes
    entry.validate()

    entry.total_hours = entry.compute_total_hours(clock_out)
    split = calculate_entry_overtime(entry, policy)
    entry.regular_hours = split.regular_hours
    entry.overtime_hours = split.overtime_hours
    entry.double_overtime_hours = split.double_overtime_hours
    entry.updated_at = clock_out
    return entry


def _entries_on(entries: Iterable[TimeEntry], day: date, clock: ClockService) -> list[TimeEntry]:
    return [e for e in entries if clock.local_date(e.clock_in) == day]


def generate_daily_summary(
    entries: Sequence[TimeEntry],
    day: Union[date, datetime],
    clock: ClockService,
    policy: Optional[OvertimePolicy] = None,
    hourly_rate: float = 0.0,
) -> DailyWorkSummary:
    """Summarize every entry that clocked in on ``day``.

    Args:
        entries: Entries to consider (entries from other days are ignored)
        day: Calendar day (instants are converted to the clock's timezone)
        clock: Calendar used for day boundaries, working days and holidays
        policy: Overtime policy
        hourly_rate: Base hourly pay rate; earnings are only reported when > 0

    Returns:
        Daily summary
    """
    policy = policy or DEFAULT_POLICY
    day = clock.local_date(day)
    is_working_day = clock.is_working_day(day)
    is_holiday = clock.is_holiday(day)
    goal_hours = policy.standard_work_hours if is_working_day else 0.0
    day_entries = _entries_on(entries, day, clock)

    if not day_entries:
        return DailyWorkSummary(
            date=day,
            is_working_day=is_working_day,
            is_holiday=is_holiday,
            goal_hours=goal_hours,
            status=DayStatus.ABSENT if is_working_day else DayStatus.COMPLETE,
        )

    total_hours = 0.0
    regular_hours = 0.0
    overtime_hours = 0.0
    double_overtime_hours = 0.0
    break_minutes = 0
    earnings = Earnings()

    for entry in day_entries:
        split = calculate_entry_overtime(entry, policy, hourly_rate)
        total_hours += entry.total_hours or 0.0
        regular_hours += split.regular_hours
        overtime_hours += split.overtime_hours
        double_overtime_hours += split.double_overtime_hours
        break_minutes += sum(b.duration or 0 for b in entry.breaks)
        earnings = earnings + split.earnings

    clock_ins = [clock.localize(e.clock_in) for e in day_entries]
    clock_outs = [clock.localize(e.clock_out) for e in day_entries if e.clock_out]

    net_work_hours = total_hours - break_minutes / 60
    completion = net_work_hours / goal_hours * 100 if goal_hours > 0 else 0.0

    status = DayStatus.INCOMPLETE
    if completion >= 100:
        status = DayStatus.OVERTIME if overtime_hours > 0 else DayStatus.COMPLETE
    elif completion == 0 and not is_working_day:
        status = DayStatus.COMPLETE

    efficiency = net_work_hours / (total_hours if total_hours > 0 else 1) * 100

    first_clock_in = min(clock_ins)
    projected_finish = None
    if status == DayStatus.INCOMPLETE:
        remaining = max(0.0, goal_hours - net_work_hours)
        if remaining > 0:
            projected_finish = first_clock_in + timedelta(hours=remaining)

    return DailyWorkSummary(
        date=day,
        is_working_day=is_working_day,
        is_holiday=is_holiday,
        goal_hours=goal_hours,
        total_hours=total_hours,
        regular_hours=regular_hours,
        overtime_hours=overtime_hours,
        double_overtime_hours=double_overtime_hours,
        break_minutes=break_minutes,
        net_work_hours=net_work_hours,
        completion_percentage=completion,
        efficiency=min(100.0, max(0.0, efficiency)),
        status=status,
        entry_count=len(day_entries),
        first_clock_in=first_clock_in,
        last_clock_out=max(clock_outs) if clock_outs else None,
        projected_finish=projected_finish,
        earnings=earnings if hourly_rate > 0 else None,
    )


def _sum_earnings(days: Iterable[DailyWorkSummary]) -> Earnings:
    total = Earnings()
    for day in days:
        if day.earnings:
            total = total + day.earnings
    return total


def generate_weekly_summary(
    entries: Sequence[TimeEntry],
    week_of: Union[date, datetime],
    clock: ClockService,
    policy: Optional[OvertimePolicy] = None,
    hourly_rate: float = 0.0,
) -> WeeklyWorkSummary:
    """Summarize the calendar week containing ``week_of``.

    The week runs from the clock's start of week for seven days.
    """
    policy = policy or DEFAULT_POLICY
    start = clock.week_start_date(week_of)
    days = [
        generate_daily_summary(entries, start + timedelta(days=i), clock, policy, hourly_rate)
        for i in range(7)
    ]

    working = [d for d in days if d.is_working_day]
    total_hours = sum(d.total_hours for d in days)
    overtime_hours = sum(d.overtime_hours for d in days)
    double_overtime_hours = sum(d.double_overtime_hours for d in days)
    goal_hours = len(working) * policy.standard_work_hours

    # max()/min() keep the first occurrence on ties
    productive = [d for d in working if d.total_hours > 0]
    most = max(productive, key=lambda d: d.efficiency) if productive else None
    least = min(productive, key=lambda d: d.efficiency) if len(productive) > 1 else None

    return WeeklyWorkSummary(
        week_start=start,
        week_end=start + timedelta(days=6),
        days=days,
        total_hours=total_hours,
        regular_hours=sum(d.regular_hours for d in days),
        overtime_hours=overtime_hours,
        double_overtime_hours=double_overtime_hours,
        break_minutes=sum(d.break_minutes for d in days),
        net_work_hours=sum(d.net_work_hours for d in days),
        working_days=len(working),
        days_worked=sum(1 for d in days if d.total_hours > 0),
        average_daily_hours=total_hours / len(working) if working else 0.0,
        overtime_occurrences=sum(1 for d in days if d.status == DayStatus.OVERTIME),
        goal_hours=goal_hours,
        completion_percentage=total_hours / goal_hours * 100 if goal_hours > 0 else 0.0,
        most_productive_day=DAY_NAMES[most.date.weekday()] if most else "N/A",
        least_productive_day=DAY_NAMES[least.date.weekday()] if least else "N/A",
        overtime_cap_exceeded=(overtime_hours + double_overtime_hours)
        > policy.max_overtime_per_week,
        earnings=_sum_earnings(days) if hourly_rate > 0 else None,
    )


def generate_monthly_summary(
    entries: Sequence[TimeEntry],
    month_of: Union[date, datetime],
    clock: ClockService,
    policy: Optional[OvertimePolicy] = None,
    hourly_rate: float = 0.0,
) -> MonthlyWorkSummary:
    """Summarize the calendar month containing ``month_of``.

    Every week intersecting the month is included in ``weeks``. Totals, day
    counts and goals only count the days that fall inside the month.
    """
    policy = policy or DEFAULT_POLICY
    first = clock.start_of_month(month_of).date()
    last = clock.end_of_month(month_of).date()

    weeks = []
    week_start = clock.week_start_date(first)
    while week_start <= last:
        weeks.append(generate_weekly_summary(entries, week_start, clock, policy, hourly_rate))
        week_start += timedelta(days=7)

    days = [d for w in weeks for d in w.days if first <= d.date <= last]
    working = [d for d in days if d.is_working_day]
    worked = [d for d in days if d.total_hours > 0]
    total_hours = sum(d.total_hours for d in days)
    goal_hours = len(working) * policy.standard_work_hours

    return MonthlyWorkSummary(
        year=first.year,
        month=first.month,
        weeks=weeks,
        total_hours=total_hours,
        regular_hours=sum(d.regular_hours for d in days),
        overtime_hours=sum(d.overtime_hours for d in days),
        double_overtime_hours=sum(d.double_overtime_hours for d in days),
        break_minutes=sum(d.break_minutes for d in days),
        net_work_hours=sum(d.net_work_hours for d in days),
        working_days=len(working),
        days_worked=len(worked),
        average_daily_hours=total_hours / len(worked) if worked else 0.0,
        overtime_occurrences=sum(1 for d in days if d.status == DayStatus.OVERTIME),
        goal_hours=goal_hours,
        completion_percentage=total_hours / goal_hours * 100 if goal_hours > 0 else 0.0,
        earnings=_sum_earnings(days) if hourly_rate > 0 else None,
    )


def calculate_trend(values: Sequence[float]) -> Trend:
    """Compare the mean of the second half of ``values`` with the first half.

    A change of more than 10% of the first-half mean is a trend. Fewer than
    three values is always stable.
    """
    if len(values) < TREND_MIN_POINTS:
        return Trend.STABLE
    middle = len(values) // 2
    first_avg = sum(values[:middle]) / middle
    second_avg = sum(values[middle:]) / (len(values) - middle)
    difference = second_avg - first_avg
    threshold = first_avg * TREND_THRESHOLD
    if difference > threshold:
        return Trend.INCREASING
    if difference < -threshold:
        return Trend.DECREASING
    return Trend.STABLE


def average_time_of_day(times: Sequence[datetime]) -> str:
    """Average local time of day as ``HH:MM``, or ``N/A`` for no values."""
    if not times:
        return "N/A"
    total = sum(t.hour * 60 + t.minute for t in times)
    hours, minutes = divmod(round(total / len(times)), 60)
    return f"{hours:02d}:{minutes:02d}"


def _is_punctual(value: datetime) -> bool:
    cutoff_hour, cutoff_minute = PUNCTUALITY_CUTOFF
    return value.hour < cutoff_hour or (value.hour == cutoff_hour and value.minute <= cutoff_minute)


def calculate_progress_metrics(
    entries: Sequence[TimeEntry],
    start: Union[date, datetime],
    end: Union[date, datetime],
    clock: ClockService,
    policy: Optional[OvertimePolicy] = None,
) -> WorkProgressMetrics:
    """Compute streaks, punctuality, break compliance and trends over a date range.

    ``current_streak`` only picks up a run when a qualifying day is today or
    later, so a run that ended yesterday leaves it at zero. ``longest_streak``
    covers the whole range. Non-working days neither extend nor break a run.
    """
    policy = policy or DEFAULT_POLICY
    summaries = [
        generate_daily_summary(entries, day, clock, policy) for day in clock.iter_days(start, end)
    ]
    today = clock.today()

    current_streak = 0
    longest_streak = 0
    run = 0
    for summary in summaries:
        if summary.is_working_day and summary.completion_percentage >= 100:
            run += 1
            if summary.date >= today:
                current_streak = run
        elif summary.is_working_day:
            longest_streak = max(longest_streak, run)
            run = 0
    longest_streak = max(longest_streak, run)

    arrivals = [s.first_clock_in for s in summaries if s.first_clock_in]
    departures = [s.last_clock_out for s in summaries if s.last_clock_out]
    on_time = sum(1 for t in arrivals if _is_punctual(t))

    low, high = BREAK_COMPLIANCE_RANGE
    with_breaks = [s for s in summaries if s.is_working_day and s.break_minutes > 0]
    compliant = sum(1 for s in with_breaks if low <= s.break_minutes <= high)

    return WorkProgressMetrics(
        start_date=clock.local_date(start),
        end_date=clock.local_date(end),
        current_streak=current_streak,
        longest_streak=longest_streak,
        average_arrival_time=average_time_of_day(arrivals),
        average_departure_time=average_time_of_day(departures),
        punctuality_rate=on_time / len(arrivals) * 100 if arrivals else 0.0,
        break_compliance=compliant / len(with_breaks) * 100 if with_breaks else 100.0,
        overtime_trend=calculate_trend([s.overtime_hours for s in summaries]),
        productivity_trend=calculate_trend([s.efficiency for s in summaries]),
        total_days_worked=sum(1 for s in summaries if s.total_hours > 0),
        days_analyzed=len(summaries),
    )


def today_progress(
    entries: Sequence[TimeEntry],
    clock: ClockService,
    policy: Optional[OvertimePolicy] = None,
    hourly_rate: float = 0.0,
) -> DailyWorkSummary:
    """Daily summary for the clock's current day."""
    return generate_daily_summary(entries, clock.today(), clock, policy, hourly_rate)


def current_week_progress(
    entries: Sequence[TimeEntry],
    clock: ClockService,
    policy: Optional[OvertimePolicy] = None,
    hourly_rate: float = 0.0,
) -> WeeklyWorkSummary:
    """Weekly summary for the week containing today."""
    return generate_weekly_summary(entries, clock.today(), clock, policy, hourly_rate)


def current_month_progress(
    entries: Sequence[TimeEntry],
    clock: ClockService,
    policy: Optional[OvertimePolicy] = None,
    hourly_rate: float = 0.0,
) -> MonthlyWorkSummary:
    """Monthly summary for the month containing today."""
    return generate_monthly_summary(entries, clock.today(), clock, policy, hourly_rate)
