"""Tests for JSON and CSV export."""

import csv
import io
import json
from datetime import date, timedelta
from pathlib import Path

import pytest  # type: ignore[import-not-found]

from conftest import START, make_entry
from time_clock.core.aggregation import (
    calculate_progress_metrics,
    generate_daily_summary,
    generate_monthly_summary,
    generate_weekly_summary,
)
from time_clock.core.clock import ClockService
from time_clock.core.errors import ValidationError
from time_clock.export_import import CSVExporter, JSONExporter, export_summary, get_exporter


@pytest.fixture  # type: ignore[misc]
def entries() -> list:
    """A week of 8-hour days with a 30 minute lunch."""
    return [make_entry(START + timedelta(days=i), hours=8.0, break_minutes=30) for i in range(5)]


@pytest.fixture  # type: ignore[misc]
def utc_clock() -> ClockService:
    return ClockService()


class TestGetExporter:
    """Test exporter lookup."""

    def test_known_formats(self) -> None:
        """Test format names map to exporters."""
        assert isinstance(get_exporter("json"), JSONExporter)
        assert isinstance(get_exporter("CSV"), CSVExporter)

    def test_unknown_format(self) -> None:
        """Test unsupported formats are a validation error."""
        with pytest.raises(ValidationError):
            get_exporter("xlsx")


class TestJSONExporter:
    """Test JSONExporter."""

    def test_get_file_extension(self) -> None:
        """Test file extension is .json."""
        exporter = JSONExporter(Path("test.json"))
        assert exporter.get_file_extension() == ".json"

    def test_render_daily_summary(self, entries: list, utc_clock: ClockService) -> None:
        """Test a daily summary renders as its dictionary."""
        summary = generate_daily_summary(entries, date(2025, 3, 10), utc_clock)

        data = json.loads(export_summary(summary, "json"))

        assert data["date"] == "2025-03-10"
        assert data["total_hours"] == 8.0
        assert data["break_minutes"] == 30
        assert data["status"] == summary.status.value

    def test_export_entries(self, tmp_path: Path, entries: list) -> None:
        """Test exporting entries to a JSON file."""
        output_file = tmp_path / "out" / "entries.json"
        exporter = JSONExporter(output_file)

        path = exporter.export_entries(entries)

        assert path == output_file
        with open(output_file) as f:
            data = json.load(f)
        assert len(data["entries"]) == 5
        assert data["entries"][0]["user_id"] == "alice"
        assert data["metadata"]["entry_count"] == 5

    def test_export_without_metadata(self, entries: list) -> None:
        """Test metadata can be left out."""
        data = json.loads(JSONExporter().render_entries(entries, include_metadata=False))

        assert "metadata" not in data

    def test_export_without_path(self, entries: list) -> None:
        """Test writing without an output path fails."""
        with pytest.raises(ValueError):
            JSONExporter().export_entries(entries)


class TestCSVExporter:
    """Test CSVExporter."""

    def test_get_file_extension(self) -> None:
        """Test file extension is .csv."""
        assert CSVExporter().get_file_extension() == ".csv"

    def test_weekly_summary_has_a_row_per_day(
        self, entries: list, utc_clock: ClockService
    ) -> None:
        """Test weekly export lists every day of the week."""
        summary = generate_weekly_summary(entries, date(2025, 3, 12), utc_clock)

        rows = list(csv.DictReader(io.StringIO(export_summary(summary, "csv"))))

        assert len(rows) == 7
        assert rows[0]["Date"] == "2025-03-10"
        assert rows[0]["Total Hours"] == "8.00"
        assert rows[0]["Break Minutes"] == "30"
        assert rows[5]["Total Hours"] == "0.00"

    def test_monthly_summary_only_lists_month_days(
        self, entries: list, utc_clock: ClockService
    ) -> None:
        """Test days of edge weeks outside the month are left out."""
        summary = generate_monthly_summary(entries, date(2025, 3, 1), utc_clock)

        rows = list(csv.DictReader(io.StringIO(export_summary(summary, "csv"))))

        assert len(rows) == 31
        assert rows[0]["Date"] == "2025-03-01"
        assert rows[-1]["Date"] == "2025-03-31"

    def test_daily_summary_metric_pairs(self, entries: list, utc_clock: ClockService) -> None:
        """Test daily export is written as metric/value pairs."""
        summary = generate_daily_summary(entries, date(2025, 3, 10), utc_clock)

        rows = list(csv.reader(io.StringIO(export_summary(summary, "csv"))))

        assert rows[0] == ["Metric", "Value"]
        assert ["Total Hours", "8.00"] in rows

    def test_metrics(self, entries: list, utc_clock: ClockService) -> None:
        """Test progress metrics export."""
        metrics = calculate_progress_metrics(
            entries, date(2025, 3, 10), date(2025, 3, 14), utc_clock
        )

        rows = list(csv.reader(io.StringIO(export_summary(metrics, "csv"))))

        assert ["days_analyzed", "5"] in rows

    def test_entries(self, tmp_path: Path, entries: list) -> None:
        """Test raw entry export."""
        open_entry = make_entry(START + timedelta(days=7))
        output_file = tmp_path / "entries.csv"

        CSVExporter(output_file).export_entries(entries + [open_entry])

        with open(output_file, newline="") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 6
        assert rows[0]["total_hours"] == "8.00"
        assert rows[0]["break_minutes"] == "30"
        assert rows[-1]["clock_out"] == ""
        assert rows[-1]["status"] == "active"

    def test_unsupported_summary(self) -> None:
        """Test rendering something that is not a summary."""
        with pytest.raises(TypeError):
            CSVExporter().render_summary(object())  # type: ignore[arg-type]
