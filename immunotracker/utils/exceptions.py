"""Error taxonomy shared across the tracker core."""

from typing import Optional


class TrackerError(Exception):
    """Base exception for all tracker errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidInputError(TrackerError, ValueError):
    """Input rejected synchronously; never silently coerced."""


class InvalidDateError(InvalidInputError):
    """Raised when a date cannot be parsed or makes no sense for the operation."""

    def __init__(self, message: str, value: object = None) -> None:
        super().__init__(message)
        self.value = value


class UnknownRecordTypeError(InvalidInputError):
    """Raised when an offline store operation names an unknown record type."""


class InvalidTransitionError(InvalidInputError):
    """Raised when a view transition is not allowed from the current view."""


class TransientNetworkError(TrackerError):
    """Network unreachable or transport failure; expected while offline."""

    def __init__(self, message: str, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class BackendRejectionError(TrackerError):
    """Backend answered but refused the request (non-2xx)."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class StorageError(TrackerError):
    """Durable store unavailable or failed; fatal for the attempting operation."""


class CacheError(TrackerError):
    """Cache tier operation failed."""


class SessionError(TrackerError):
    """Raised when an operation needs a signed-in session and there is none."""
