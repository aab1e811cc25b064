"""Tests for data models and result values."""

from datetime import datetime, timedelta, timezone

import pytest  # type: ignore[import-not-found]

from conftest import START, make_entry
from time_clock.core.errors import (
    AlreadyClockedIn,
    Err,
    ErrorCategory,
    ErrorCode,
    Ok,
    StorageError,
    ValidationError,
)
from time_clock.core.models import (
    BreakPeriod,
    BreakType,
    Earnings,
    EntryStatus,
    OvertimePolicy,
    SessionRecord,
    TimeEntry,
)


class TestTimeEntry:
    """Test TimeEntry model."""

    def test_new_entry_is_active(self) -> None:
        """Test a fresh entry is active with no totals."""
        entry = TimeEntry(user_id="alice", clock_in=START)

        assert entry.is_active
        assert entry.status == EntryStatus.ACTIVE
        assert entry.total_hours is None
        assert entry.open_break is None
        assert entry.id

    def test_compute_total_hours_deducts_breaks(self) -> None:
        """Test total hours are elapsed time minus break minutes."""
        entry = make_entry(START, break_minutes=45)

        assert entry.compute_total_hours(START + timedelta(hours=9)) == pytest.approx(8.25)

    def test_compute_total_hours_counts_open_break_until_now(self) -> None:
        """Test an open break is deducted up to the evaluation time."""
        entry = TimeEntry(user_id="alice", clock_in=START)
        entry.breaks.append(BreakPeriod(type=BreakType.SHORT, start_time=START + timedelta(hours=1)))

        now = START + timedelta(hours=1, minutes=30)
        assert entry.compute_total_hours(now) == pytest.approx(1.0)

    def test_total_hours_floor_at_zero(self) -> None:
        """Test break time longer than elapsed time yields zero."""
        entry = TimeEntry(user_id="alice", clock_in=START)
        entry.breaks.append(
            BreakPeriod(type=BreakType.LUNCH, start_time=START, end_time=START, duration=120)
        )

        assert entry.compute_total_hours(START + timedelta(hours=1)) == 0.0

    def test_snapshot_leaves_original_untouched(self) -> None:
        """Test snapshot computes live totals on a copy."""
        entry = TimeEntry(user_id="alice", clock_in=START)
        snap = entry.snapshot(START + timedelta(hours=2))

        assert snap.total_hours == pytest.approx(2.0)
        assert entry.total_hours is None

    def test_validate_rejects_clock_out_before_clock_in(self) -> None:
        """Test validation of clock-out ordering."""
        entry = TimeEntry(user_id="alice", clock_in=START, clock_out=START - timedelta(minutes=1))

        with pytest.raises(ValidationError):
            entry.validate()

    def test_validate_rejects_naive_clock_in(self) -> None:
        """Test clock-in must carry a timezone."""
        entry = TimeEntry(user_id="alice", clock_in=datetime(2025, 3, 10, 9, 0))

        with pytest.raises(ValidationError):
            entry.validate()

    def test_validate_rejects_two_open_breaks(self) -> None:
        """Test at most one break may be open."""
        entry = TimeEntry(user_id="alice", clock_in=START)
        entry.breaks.append(BreakPeriod(type=BreakType.SHORT, start_time=START))
        entry.breaks.append(BreakPeriod(type=BreakType.LUNCH, start_time=START))

        with pytest.raises(ValidationError):
            entry.validate()

    def test_validate_rejects_overlapping_breaks(self) -> None:
        """Test breaks must not overlap."""
        entry = TimeEntry(user_id="alice", clock_in=START)
        entry.breaks.append(
            BreakPeriod(
                type=BreakType.SHORT,
                start_time=START,
                end_time=START + timedelta(minutes=20),
                duration=20,
            )
        )
        entry.breaks.append(
            BreakPeriod(type=BreakType.LUNCH, start_time=START + timedelta(minutes=10))
        )

        with pytest.raises(ValidationError):
            entry.validate()

    def test_to_dict_and_from_dict(self) -> None:
        """Test serialization preserves every field."""
        entry = make_entry(START, hours=8.0, break_minutes=30)
        entry.notes = "Release day"
        entry.flag_reason = "duplicate"

        restored = TimeEntry.from_dict(entry.to_dict())

        assert restored == entry
        assert restored.breaks[0].type == BreakType.LUNCH
        assert restored.clock_in.tzinfo is not None


class TestOvertimePolicy:
    """Test OvertimePolicy."""

    def test_defaults(self) -> None:
        """Test default thresholds and rates."""
        policy = OvertimePolicy()

        assert policy.standard_work_hours == 8.0
        assert policy.overtime_threshold == 8.0
        assert policy.overtime_rate == 1.25
        assert policy.double_overtime_threshold == 12.0
        assert policy.max_overtime_per_day == 4.0
        assert policy.max_overtime_per_week == 20.0

    def test_with_overrides_returns_copy(self) -> None:
        """Test overrides never mutate the original policy."""
        policy = OvertimePolicy()
        custom = policy.with_overrides(standard_work_hours=7.5)

        assert custom.standard_work_hours == 7.5
        assert policy.standard_work_hours == 8.0

    def test_from_dict_ignores_unknown_keys(self) -> None:
        """Test config sections with extra keys are accepted."""
        policy = OvertimePolicy.from_dict({"overtime_rate": 1.5, "hourly_rate": 30.0})

        assert policy.overtime_rate == 1.5


class TestEarnings:
    """Test Earnings."""

    def test_total_and_addition(self) -> None:
        """Test earnings add up component-wise."""
        total = Earnings(regular_pay=800.0) + Earnings(overtime_pay=250.0)

        assert total.total_pay == 1050.0
        assert total.to_dict()["total_pay"] == 1050.0


class TestSessionRecord:
    """Test SessionRecord."""

    def test_round_trip(self) -> None:
        """Test session records survive serialization."""
        record = SessionRecord(user_id="alice", start_time=START, entry_ids=["a", "b"])
        record.end_time = START + timedelta(hours=8)

        assert SessionRecord.from_dict(record.to_dict()) == record


class TestResults:
    """Test Ok/Err results and error taxonomy."""

    def test_ok_unwrap(self) -> None:
        """Test Ok exposes its value."""
        result = Ok(42)

        assert result.is_ok
        assert result.unwrap() == 42

    def test_err_exposes_error_details(self) -> None:
        """Test Err carries kind, code and message."""
        result = Err(AlreadyClockedIn())

        assert not result.is_ok
        assert result.kind == ErrorCategory.BUSINESS_RULE
        assert result.code == ErrorCode.ALREADY_CLOCKED_IN
        assert "already clocked in" in result.message

    def test_err_unwrap_reraises(self) -> None:
        """Test unwrap re-raises the typed error."""
        with pytest.raises(AlreadyClockedIn):
            Err(AlreadyClockedIn()).unwrap()

    def test_only_system_errors_are_retryable(self) -> None:
        """Test retry classification."""
        assert StorageError().retryable
        assert not ValidationError().retryable
        assert not AlreadyClockedIn().retryable

    def test_error_to_dict(self) -> None:
        """Test error serialization."""
        data = ValidationError("Bad date", {"field": "start"}).to_dict()

        assert data == {
            "code": "VALIDATION_FAILED",
            "category": "validation",
            "message": "Bad date",
            "context": {"field": "start"},
        }


def test_timestamps_default_to_utc() -> None:
    """Test created_at defaults to an aware UTC instant."""
    entry = TimeEntry(user_id="alice", clock_in=START)

    assert entry.created_at.tzinfo == timezone.utc
