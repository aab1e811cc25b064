"""Tests for user notifications."""

import asyncio
import io
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from rich.console import Console

from time_clock.notifications.notifier import (
    ConsoleNotifier,
    DesktopNotifier,
    NullNotifier,
    Severity,
)


class TestNullNotifier:
    """Test NullNotifier."""

    def test_notify_keeps_history(self) -> None:
        """Test suppressed notifications are still recorded."""
        notifier = NullNotifier()

        asyncio.run(notifier.notify("alice", "Clocked In", "Have a productive day!"))

        assert len(notifier.history) == 1
        assert notifier.history[0].severity == Severity.INFO

    def test_cleanup_expired(self) -> None:
        """Test old notifications are purged after the retention period."""
        notifier = NullNotifier(retention=timedelta(hours=1))
        asyncio.run(notifier.notify("alice", "A", "first"))

        assert asyncio.run(notifier.cleanup_expired()) == 0
        later = datetime.now(timezone.utc) + timedelta(hours=2)
        assert asyncio.run(notifier.cleanup_expired(later)) == 1
        assert notifier.history == []


class TestConsoleNotifier:
    """Test ConsoleNotifier."""

    def test_prints_title_and_message(self) -> None:
        """Test notifications are written to the console."""
        output = io.StringIO()
        notifier = ConsoleNotifier(console=Console(file=output, width=120))

        asyncio.run(notifier.notify("alice", "Break Ended", "Duration: 15 minutes", Severity.SUCCESS))

        assert "Break Ended Duration: 15 minutes" in output.getvalue()


class TestDesktopNotifier:
    """Test DesktopNotifier."""

    def test_delivers_through_backend(self) -> None:
        """Test notification fields are passed to plyer."""
        notifier = DesktopNotifier(timeout=3)
        notifier._notifier = Mock()

        asyncio.run(notifier.notify("alice", "Clocked Out", "Total hours: 8.00"))

        notifier._notifier.notify.assert_called_once_with(
            title="Clocked Out",
            message="Total hours: 8.00",
            app_name="Time Clock",
            timeout=3,
        )
        assert notifier.available

    def test_unavailable_backend_is_silent(self) -> None:
        """Test nothing breaks without a desktop backend."""
        notifier = DesktopNotifier()
        notifier._notifier = None

        asyncio.run(notifier.notify("alice", "Clocked In", "Hello"))

        assert not notifier.available
        assert len(notifier.history) == 1

    def test_delivery_errors_are_swallowed(self) -> None:
        """Test a failing backend does not raise."""
        notifier = DesktopNotifier()
        notifier._notifier = Mock()
        notifier._notifier.notify.side_effect = RuntimeError("no display")

        asyncio.run(notifier.notify("alice", "Clocked In", "Hello"))

        assert notifier.history == []
