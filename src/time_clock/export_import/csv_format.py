"""CSV export."""

import csv
import io
from typing import Any

from time_clock.core.models import (
    DailyWorkSummary,
    MonthlyWorkSummary,
    TimeEntry,
    WeeklyWorkSummary,
    WorkProgressMetrics,
)
from time_clock.export_import.base import Exporter, Summary

DAY_HEADERS = [
    "Date",
    "Total Hours",
    "Regular Hours",
    "Overtime Hours",
    "Break Minutes",
    "Efficiency",
    "Status",
    "Completion %",
]

ENTRY_HEADERS = [
    "id",
    "user_id",
    "clock_in",
    "clock_out",
    "status",
    "total_hours",
    "regular_hours",
    "overtime_hours",
    "double_overtime_hours",
    "break_minutes",
    "notes",
]


def _num(value: float) -> str:
    return f"{value:.2f}"


def _day_row(day: DailyWorkSummary) -> list[str]:
    return [
        day.date.isoformat(),
        _num(day.total_hours),
        _num(day.regular_hours),
        _num(day.overtime_hours),
        str(day.break_minutes),
        f"{_num(day.efficiency)}%",
        day.status.value,
        f"{_num(day.completion_percentage)}%",
    ]


class CSVExporter(Exporter):
    """Export summaries and time entries to CSV.

    Daily summaries and metrics are written as ``Metric,Value`` pairs; weekly
    and monthly summaries as one row per day.
    """

    def get_file_extension(self) -> str:
        return ".csv"

    def render_summary(self, summary: Summary, **kwargs: Any) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")

        if isinstance(summary, WeeklyWorkSummary):
            writer.writerow(DAY_HEADERS)
            writer.writerows(_day_row(d) for d in summary.days)
        elif isinstance(summary, MonthlyWorkSummary):
            writer.writerow(DAY_HEADERS)
            for week in summary.weeks:
                writer.writerows(
                    _day_row(d)
                    for d in week.days
                    if d.date.year == summary.year and d.date.month == summary.month
                )
        elif isinstance(summary, DailyWorkSummary):
            writer.writerow(["Metric", "Value"])
            writer.writerows(
                [
                    ["Date", summary.date.isoformat()],
                    ["Total Hours", _num(summary.total_hours)],
                    ["Regular Hours", _num(summary.regular_hours)],
                    ["Overtime Hours", _num(summary.overtime_hours)],
                    ["Break Minutes", str(summary.break_minutes)],
                    ["Efficiency", f"{_num(summary.efficiency)}%"],
                    ["Status", summary.status.value],
                    ["Completion %", f"{_num(summary.completion_percentage)}%"],
                ]
            )
        elif isinstance(summary, WorkProgressMetrics):
            writer.writerow(["Metric", "Value"])
            for key, value in summary.to_dict().items():
                writer.writerow([key, value])
        else:
            raise TypeError(f"Cannot export {type(summary).__name__} as CSV")
        return buffer.getvalue()

    def render_entries(self, entries: list[TimeEntry], **kwargs: Any) -> str:
        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=ENTRY_HEADERS, lineterminator="\n")
        writer.writeheader()
        for entry in entries:
            writer.writerow(
                {
                    "id": entry.id,
                    "user_id": entry.user_id,
                    "clock_in": entry.clock_in.isoformat(),
                    "clock_out": entry.clock_out.isoformat() if entry.clock_out else "",
                    "status": entry.status.value,
                    "total_hours": "" if entry.total_hours is None else _num(entry.total_hours),
                    "regular_hours": ""
                    if entry.regular_hours is None
                    else _num(entry.regular_hours),
                    "overtime_hours": ""
                    if entry.overtime_hours is None
                    else _num(entry.overtime_hours),
                    "double_overtime_hours": ""
                    if entry.double_overtime_hours is None
                    else _num(entry.double_overtime_hours),
                    "break_minutes": entry.break_minutes,
                    "notes": entry.notes or "",
                }
            )
        return buffer.getvalue()
