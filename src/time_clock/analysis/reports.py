"""Terminal reports for work summaries and progress metrics."""

from typing import Optional

from rich.console import Console  # type: ignore[import-not-found]
from rich.table import Table  # type: ignore[import-not-found]
from rich.text import Text  # type: ignore[import-not-found]

from time_clock.core.models import (
    DailyWorkSummary,
    DayStatus,
    MonthlyWorkSummary,
    TimeEntry,
    WeeklyWorkSummary,
    WorkProgressMetrics,
)

STATUS_STYLES = {
    DayStatus.ABSENT: "red",
    DayStatus.INCOMPLETE: "yellow",
    DayStatus.COMPLETE: "green",
    DayStatus.OVERTIME: "magenta",
}


class ReportGenerator:
    """Render summaries and metrics with rich tables."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize report generator.

        Args:
            console: Rich console for output. Creates default if None.
        """
        self.console = console or Console()

    def status_report(self, entry: Optional[TimeEntry], live_hours: float = 0.0) -> None:
        """Show whether the user is clocked in or on a break."""
        if entry is None:
            self.console.print("[yellow]Not clocked in[/yellow]")
            return

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column(style="bold")
        table.add_row("Clocked in:", entry.clock_in.strftime("%Y-%m-%d %H:%M"))
        table.add_row("Worked so far:", self._format_hours(live_hours))
        current = entry.open_break
        if current is not None:
            table.add_row(
                "On break:", f"{current.type.value} since {current.start_time.strftime('%H:%M')}"
            )
        table.add_row("Breaks taken:", f"{len(entry.breaks)} ({entry.break_minutes} min)")
        if entry.notes:
            table.add_row("Notes:", entry.notes)

        self.console.print("\n[bold cyan]Time Clock - Status[/bold cyan]\n")
        self.console.print(table)

    def daily_report(self, summary: DailyWorkSummary) -> None:
        """Display a daily summary."""
        self.console.print(f"\n[bold cyan]Time Clock - {summary.date.isoformat()}[/bold cyan]\n")

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column(style="bold")

        style = STATUS_STYLES[summary.status]
        table.add_row("Status:", Text(summary.status.value, style=style))
        table.add_row("Total Time:", self._format_hours(summary.total_hours))
        table.add_row("Net Work Time:", self._format_hours(summary.net_work_hours))
        table.add_row("Regular:", self._format_hours(summary.regular_hours))
        table.add_row("Overtime:", self._format_hours(summary.overtime_hours))
        if summary.double_overtime_hours:
            table.add_row("Double Overtime:", self._format_hours(summary.double_overtime_hours))
        table.add_row("Breaks:", f"{summary.break_minutes} min")
        table.add_row("Efficiency:", f"{summary.efficiency:.1f}%")
        if summary.goal_hours:
            table.add_row("Goal:", self._format_hours(summary.goal_hours))
            table.add_row("Completion:", self._create_bar(summary.completion_percentage))
        if summary.projected_finish:
            table.add_row("Projected Finish:", summary.projected_finish.strftime("%H:%M"))
        if summary.earnings:
            table.add_row("Earnings:", f"{summary.earnings.total_pay:,.2f}")

        self.console.print(table)

    def weekly_report(self, summary: WeeklyWorkSummary) -> None:
        """Display a weekly summary with one row per day."""
        title = f"Week {summary.week_start.isoformat()} - {summary.week_end.isoformat()}"
        self.console.print(f"\n[bold cyan]Time Clock - {title}[/bold cyan]\n")
        self.console.print(self._days_table(summary.days))
        self.console.print()

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column(style="bold")
        table.add_row("Total Time:", self._format_hours(summary.total_hours))
        table.add_row("Overtime:", self._format_hours(summary.overtime_hours))
        table.add_row("Average / Day:", self._format_hours(summary.average_daily_hours))
        table.add_row("Completion:", self._create_bar(summary.completion_percentage))
        table.add_row("Most Productive:", summary.most_productive_day)
        table.add_row("Least Productive:", summary.least_productive_day)
        if summary.overtime_cap_exceeded:
            table.add_row("Warning:", Text("weekly overtime cap exceeded", style="red"))
        if summary.earnings:
            table.add_row("Earnings:", f"{summary.earnings.total_pay:,.2f}")
        self.console.print(table)

    def monthly_report(self, summary: MonthlyWorkSummary) -> None:
        """Display a monthly summary with one row per week."""
        self.console.print(
            f"\n[bold cyan]Time Clock - {summary.year}-{summary.month:02d}[/bold cyan]\n"
        )

        weeks = Table(title="Weeks")
        weeks.add_column("Week", style="cyan")
        weeks.add_column("Hours", style="magenta", justify="right")
        weeks.add_column("Overtime", style="yellow", justify="right")
        weeks.add_column("Completion", style="blue")
        for week in summary.weeks:
            weeks.add_row(
                week.week_start.isoformat(),
                self._format_hours(week.total_hours),
                self._format_hours(week.overtime_hours),
                self._create_bar(week.completion_percentage),
            )
        self.console.print(weeks)
        self.console.print()

        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column(style="bold")
        table.add_row("Total Time:", self._format_hours(summary.total_hours))
        table.add_row("Days Worked:", f"{summary.days_worked} / {summary.working_days}")
        table.add_row("Overtime Days:", str(summary.overtime_occurrences))
        table.add_row("Completion:", self._create_bar(summary.completion_percentage))
        if summary.earnings:
            table.add_row("Earnings:", f"{summary.earnings.total_pay:,.2f}")
        self.console.print(table)

    def metrics_report(self, metrics: WorkProgressMetrics) -> None:
        """Display progress metrics."""
        self.console.print(
            f"\n[bold cyan]Progress {metrics.start_date.isoformat()} - "
            f"{metrics.end_date.isoformat()}[/bold cyan]\n"
        )
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column(style="dim")
        table.add_column(style="bold")
        table.add_row("Current Streak:", f"{metrics.current_streak} days")
        table.add_row("Longest Streak:", f"{metrics.longest_streak} days")
        table.add_row("Days Worked:", str(metrics.total_days_worked))
        table.add_row("Average Arrival:", metrics.average_arrival_time)
        table.add_row("Average Departure:", metrics.average_departure_time)
        table.add_row("Punctuality:", f"{metrics.punctuality_rate:.1f}%")
        table.add_row("Break Compliance:", f"{metrics.break_compliance:.1f}%")
        table.add_row("Overtime Trend:", metrics.overtime_trend.value)
        table.add_row("Productivity Trend:", metrics.productivity_trend.value)
        self.console.print(table)

    def _days_table(self, days: list[DailyWorkSummary]) -> Table:
        table = Table()
        table.add_column("Date", style="cyan")
        table.add_column("Hours", style="magenta", justify="right")
        table.add_column("Breaks", justify="right")
        table.add_column("Overtime", style="yellow", justify="right")
        table.add_column("Status")
        table.add_column("Completion", style="blue")
        for day in days:
            table.add_row(
                day.date.strftime("%a %Y-%m-%d"),
                self._format_hours(day.total_hours),
                f"{day.break_minutes}m",
                self._format_hours(day.overtime_hours),
                Text(day.status.value, style=STATUS_STYLES[day.status]),
                self._create_bar(day.completion_percentage, width=15) if day.goal_hours else "-",
            )
        return table

    def _format_hours(self, hours: Optional[float]) -> str:
        """Format fractional hours as ``Xh Ym``.

        Args:
            hours: Duration in hours

        Returns:
            Formatted duration string
        """
        if hours is None:
            return "ongoing"

        total_minutes = int(round(hours * 60))
        h, m = divmod(total_minutes, 60)
        if h > 0:
            return f"{h}h {m}m"
        return f"{m}m"

    def _create_bar(self, percentage: float, width: int = 25) -> Text:
        """Create a visual bar for percentage display.

        Args:
            percentage: Percentage value (over 100 is shown full)
            width: Width of the bar in characters

        Returns:
            Rich Text object with colored bar
        """
        filled = int((min(max(percentage, 0.0), 100.0) / 100) * width)
        empty = width - filled

        bar = Text()
        bar.append("█" * filled, style="blue")
        bar.append("░" * empty, style="dim")
        bar.append(f" {percentage:.0f}%")

        return bar
