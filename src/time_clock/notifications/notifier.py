"""User notifications for Time Clock."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Optional

from rich.console import Console

logger = logging.getLogger(__name__)


class Severity(Enum):
    """Notification severity."""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notification:
    """A delivered notification."""

    user_id: str
    title: str
    message: str
    severity: Severity
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class NotificationGateway(ABC):
    """Deliver notifications to a user.

    ``notify`` never raises: delivery failures are logged and swallowed so
    they cannot block the operation that triggered them. Delivered
    notifications are kept for ``retention`` and purged by ``cleanup_expired``.
    """

    def __init__(self, retention: timedelta = timedelta(days=1)):
        self.retention = retention
        self.history: list[Notification] = []

    async def notify(
        self,
        user_id: str,
        title: str,
        message: str,
        severity: Severity = Severity.INFO,
    ) -> None:
        notification = Notification(user_id, title, message, severity)
        try:
            await self._deliver(notification)
        except Exception as e:
            logger.warning(f"Failed to deliver notification '{title}': {e}")
            return
        self.history.append(notification)

    @abstractmethod
    async def _deliver(self, notification: Notification) -> None:
        """Show the notification to the user."""

    async def cleanup_expired(self, now: Optional[datetime] = None) -> int:
        """Forget notifications older than the retention period.

        Returns:
            Number of notifications removed
        """
        cutoff = (now or datetime.now(timezone.utc)) - self.retention
        kept = [n for n in self.history if n.created_at >= cutoff]
        removed = len(self.history) - len(kept)
        self.history = kept
        return removed


class NullNotifier(NotificationGateway):
    """Discards notifications (notifications disabled)."""

    async def _deliver(self, notification: Notification) -> None:
        logger.debug(f"Notification suppressed: {notification.title}")


class ConsoleNotifier(NotificationGateway):
    """Print notifications to the terminal."""

    STYLES = {
        Severity.INFO: "cyan",
        Severity.SUCCESS: "green",
        Severity.WARNING: "yellow",
        Severity.ERROR: "red",
    }

    def __init__(self, console: Optional[Console] = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.console = console or Console(stderr=True)

    async def _deliver(self, notification: Notification) -> None:
        style = self.STYLES[notification.severity]
        self.console.print(f"[bold {style}]{notification.title}[/bold {style}] {notification.message}")


class DesktopNotifier(NotificationGateway):
    """Send desktop notifications through plyer."""

    def __init__(self, timeout: int = 5, **kwargs: Any):
        """Initialize notifier.

        Args:
            timeout: Display duration in seconds
        """
        super().__init__(**kwargs)
        self.timeout = timeout
        self._notifier = self._init_notifier()

    def _init_notifier(self) -> Any:
        """Initialize platform-specific notifier.

        Returns:
            Notification handler or None if not available
        """
        try:
            from plyer import notification  # type: ignore[import-not-found]

            return notification
        except ImportError:
            logger.info("plyer is not installed, desktop notifications disabled")
            return None

    @property
    def available(self) -> bool:
        return self._notifier is not None

    async def _deliver(self, notification: Notification) -> None:
        if not self._notifier:
            return
        await asyncio.to_thread(
            self._notifier.notify,
            title=notification.title,
            message=notification.message,
            app_name="Time Clock",
            timeout=self.timeout,
        )


def create_notifier(config: Any) -> NotificationGateway:
    """Build the notifier selected in the ``notifications`` config section."""
    if not config.get("notifications.enabled", True):
        return NullNotifier()
    backend = config.get("notifications.backend", "console")
    if backend == "desktop":
        return DesktopNotifier()
    if backend == "none":
        return NullNotifier()
    return ConsoleNotifier()
