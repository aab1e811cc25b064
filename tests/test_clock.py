"""Tests for the calendar and timezone service."""

from datetime import date, datetime, timezone

from time_clock.core.clock import ClockService


class TestClockService:
    """Test ClockService."""

    def test_now_follows_injected_time(self) -> None:
        """Test now() uses the injected time source."""
        fixed = datetime(2025, 3, 10, 23, 30, tzinfo=timezone.utc)
        clock = ClockService(timezone_name="Europe/Berlin", now_func=lambda: fixed)

        assert clock.now().hour == 0
        assert clock.today() == date(2025, 3, 11)

    def test_local_date_uses_configured_timezone(self) -> None:
        """Test an instant maps to the local calendar day."""
        clock = ClockService(timezone_name="America/New_York")
        instant = datetime(2025, 3, 11, 2, 0, tzinfo=timezone.utc)

        assert clock.local_date(instant) == date(2025, 3, 10)

    def test_naive_values_are_local(self) -> None:
        """Test naive datetimes are taken in the configured timezone."""
        clock = ClockService(timezone_name="Europe/Berlin")

        assert clock.localize(datetime(2025, 3, 10, 9, 0)).utcoffset().total_seconds() == 3600

    def test_week_starts_monday_by_default(self) -> None:
        """Test default week start."""
        clock = ClockService()

        assert clock.week_start_date(date(2025, 3, 13)) == date(2025, 3, 10)
        assert clock.end_of_week(date(2025, 3, 13)).date() == date(2025, 3, 16)

    def test_sunday_week_start(self) -> None:
        """Test weeks starting on Sunday."""
        clock = ClockService(week_start="sunday")

        assert clock.week_start_date(date(2025, 3, 13)) == date(2025, 3, 9)
        assert clock.week_start_date(date(2025, 3, 9)) == date(2025, 3, 9)

    def test_month_bounds(self) -> None:
        """Test start and end of month."""
        clock = ClockService()

        assert clock.start_of_month(date(2024, 2, 14)).date() == date(2024, 2, 1)
        assert clock.end_of_month(date(2024, 2, 14)).date() == date(2024, 2, 29)

    def test_working_days_and_holidays(self) -> None:
        """Test weekends and holidays are not working days."""
        clock = ClockService(holidays=["2025-03-12"])

        assert clock.is_working_day(date(2025, 3, 10))
        assert not clock.is_working_day(date(2025, 3, 12))
        assert clock.is_holiday(date(2025, 3, 12))
        assert not clock.is_working_day(date(2025, 3, 15))

    def test_custom_working_days(self) -> None:
        """Test a configured working week."""
        clock = ClockService(working_days=["saturday", "sunday"])

        assert clock.is_working_day(date(2025, 3, 15))
        assert not clock.is_working_day(date(2025, 3, 10))

    def test_iter_days_inclusive(self) -> None:
        """Test day iteration includes both ends."""
        clock = ClockService()
        days = list(clock.iter_days(date(2025, 3, 30), date(2025, 4, 2)))

        assert days == [date(2025, 3, 30), date(2025, 3, 31), date(2025, 4, 1), date(2025, 4, 2)]

    def test_is_same_day(self) -> None:
        """Test same-day comparison across instants."""
        clock = ClockService()

        assert clock.is_same_day(
            datetime(2025, 3, 10, 0, 1, tzinfo=timezone.utc),
            datetime(2025, 3, 10, 23, 59, tzinfo=timezone.utc),
        )
