"""Error taxonomy and result values for time clock operations.

Every error carries a machine-readable ``code``, a human-readable message
that is safe to show the end user, a ``category`` and a context dictionary.
Engine operations return ``Ok`` or ``Err`` values instead of raising; call
``unwrap()`` to get the value or re-raise the typed error.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class ErrorCategory(Enum):
    """Broad error categories."""

    VALIDATION = "validation"
    BUSINESS_RULE = "business_rule"
    SYSTEM = "system"


class ErrorCode(Enum):
    """Machine-readable error codes."""

    VALIDATION_FAILED = "VALIDATION_FAILED"
    INVALID_BREAK_TYPE = "INVALID_BREAK_TYPE"
    CLOCK_IN_IN_FUTURE = "CLOCK_IN_IN_FUTURE"
    ALREADY_CLOCKED_IN = "ALREADY_CLOCKED_IN"
    NOT_CLOCKED_IN = "NOT_CLOCKED_IN"
    ALREADY_ON_BREAK = "ALREADY_ON_BREAK"
    NO_ACTIVE_BREAK = "NO_ACTIVE_BREAK"
    BREAK_LIMIT_REACHED = "BREAK_LIMIT_REACHED"
    NO_USER_SESSION = "NO_USER_SESSION"
    ENGINE_SHUT_DOWN = "ENGINE_SHUT_DOWN"
    ENTRY_NOT_FOUND = "ENTRY_NOT_FOUND"
    STORAGE_FAILED = "STORAGE_FAILED"


class TimeClockError(Exception):
    """Base error for all time clock failures."""

    category = ErrorCategory.SYSTEM
    default_code = ErrorCode.STORAGE_FAILED
    default_message = "Something went wrong"

    def __init__(
        self,
        message: Optional[str] = None,
        context: Optional[dict[str, Any]] = None,
        code: Optional[ErrorCode] = None,
    ):
        self.message = message or self.default_message
        self.context = context or {}
        self.code = code or self.default_code
        super().__init__(self.message)

    @property
    def retryable(self) -> bool:
        """Only system failures are worth retrying."""
        return self.category == ErrorCategory.SYSTEM

    def to_dict(self) -> dict[str, Any]:
        return {
            "code": self.code.value,
            "category": self.category.value,
            "message": self.message,
            "context": self.context,
        }


class ValidationError(TimeClockError):
    """Malformed input. Never retried."""

    category = ErrorCategory.VALIDATION
    default_code = ErrorCode.VALIDATION_FAILED
    default_message = "Invalid input"


class BusinessRuleError(TimeClockError):
    """A state transition that is not allowed right now."""

    category = ErrorCategory.BUSINESS_RULE


class StorageError(TimeClockError):
    """A storage call failed."""

    category = ErrorCategory.SYSTEM
    default_code = ErrorCode.STORAGE_FAILED
    default_message = "Unable to save your data. Please try again."


class InvalidBreakType(ValidationError):
    default_code = ErrorCode.INVALID_BREAK_TYPE
    default_message = "Unknown break type"


class ClockInInFuture(ValidationError):
    default_code = ErrorCode.CLOCK_IN_IN_FUTURE
    default_message = "Clock-in time cannot be in the future"


class AlreadyClockedIn(BusinessRuleError):
    default_code = ErrorCode.ALREADY_CLOCKED_IN
    default_message = "You are already clocked in. Please clock out first."


class NotClockedIn(BusinessRuleError):
    default_code = ErrorCode.NOT_CLOCKED_IN
    default_message = "You are not clocked in."


class AlreadyOnBreak(BusinessRuleError):
    default_code = ErrorCode.ALREADY_ON_BREAK
    default_message = "You are already on a break. End it before starting another."


class NoActiveBreak(BusinessRuleError):
    default_code = ErrorCode.NO_ACTIVE_BREAK
    default_message = "You are not on a break."


class BreakLimitReached(BusinessRuleError):
    default_code = ErrorCode.BREAK_LIMIT_REACHED
    default_message = "Daily limit for this break type reached"


class NoUserSession(BusinessRuleError):
    default_code = ErrorCode.NO_USER_SESSION
    default_message = "No user session. Initialize the engine with a user first."


class EntryNotFound(BusinessRuleError):
    default_code = ErrorCode.ENTRY_NOT_FOUND
    default_message = "Time entry not found"


class EngineShutDown(BusinessRuleError):
    default_code = ErrorCode.ENGINE_SHUT_DOWN
    default_message = "This session has ended. Start a new one to continue."


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    """Failed result carrying the typed error."""

    error: TimeClockError
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def kind(self) -> ErrorCategory:
        return self.error.category

    @property
    def code(self) -> ErrorCode:
        return self.error.code

    @property
    def message(self) -> str:
        return self.error.message

    def unwrap(self) -> Any:
        raise self.error


Result = Union[Ok[T], Err]
