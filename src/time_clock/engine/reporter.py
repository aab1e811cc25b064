"""Convert, log and surface errors raised inside engine operations."""

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

from time_clock.core.errors import ErrorCategory, StorageError, TimeClockError
from time_clock.notifications.notifier import NotificationGateway, Severity

logger = logging.getLogger(__name__)

GENERIC_RETRY_MESSAGE = "Something went wrong while saving your time data. Please try again."


class ErrorReporter:
    """Central error handling for the session engine.

    Validation and business-rule errors are logged as warnings and shown to
    the user verbatim. System errors are logged with their traceback and the
    user only sees a generic retry message.
    """

    def __init__(
        self, notifier: Optional[NotificationGateway] = None, max_log: int = 100
    ):
        self.notifier = notifier
        self.errors: deque[dict[str, Any]] = deque(maxlen=max_log)

    @staticmethod
    def convert(exc: BaseException, operation: str = "") -> TimeClockError:
        """Return ``exc`` as a TimeClockError, wrapping foreign exceptions."""
        if isinstance(exc, TimeClockError):
            return exc
        error = StorageError(
            context={"operation": operation, "cause": f"{type(exc).__name__}: {exc}"}
        )
        error.__cause__ = exc
        return error

    async def report(
        self, exc: BaseException, operation: str, user_id: Optional[str] = None
    ) -> TimeClockError:
        """Log an error, remember it and notify the user.

        Returns:
            The converted error
        """
        error = self.convert(exc, operation)
        if error.category == ErrorCategory.SYSTEM:
            logger.error(f"{operation} failed: {error.context or error.message}", exc_info=exc)
        else:
            logger.warning(f"{operation} rejected [{error.code.value}]: {error.message}")

        self.errors.append(
            {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "operation": operation,
                "user_id": user_id,
                **error.to_dict(),
            }
        )

        if self.notifier is not None and user_id is not None:
            if error.category == ErrorCategory.SYSTEM:
                await self.notifier.notify(user_id, "Error", GENERIC_RETRY_MESSAGE, Severity.ERROR)
            else:
                await self.notifier.notify(user_id, "Error", error.message, Severity.WARNING)
        return error

    def trim(self, keep: int = 50) -> int:
        """Drop all but the newest ``keep`` log records.

        Returns:
            Number of records dropped
        """
        dropped = max(0, len(self.errors) - keep)
        for _ in range(dropped):
            self.errors.popleft()
        return dropped
