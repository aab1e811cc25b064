"""Notification backends for Time Clock."""

from time_clock.notifications.notifier import (
    ConsoleNotifier,
    DesktopNotifier,
    Notification,
    NotificationGateway,
    NullNotifier,
    Severity,
    create_notifier,
)

__all__ = [
    "ConsoleNotifier",
    "DesktopNotifier",
    "Notification",
    "NotificationGateway",
    "NullNotifier",
    "Severity",
    "create_notifier",
]
