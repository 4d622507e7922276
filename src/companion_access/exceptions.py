"""Custom exception hierarchy for companion-access."""

from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(str, Enum):
    """Standardized error codes carried by every CompanionAccessError."""

    # Grant errors
    INVALID_GRANT = "INVALID_GRANT"

    # Session errors
    MISSING_ACCESS_TOKEN = "MISSING_ACCESS_TOKEN"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    MISSING_CALLER = "MISSING_CALLER"

    # Collaborator errors
    API_ERROR = "API_ERROR"

    # Generic errors
    INTERNAL_ERROR = "INTERNAL_ERROR"


class CompanionAccessError(Exception):
    """
    Base exception for all companion-access errors.

    Carries a human-readable message (the text stored on the error slice),
    a machine-readable error code and optional details.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize exception.

        Args:
            message: Human-readable error message
            error_code: Machine-readable error code
            details: Optional additional context/details
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class InvalidGrantError(CompanionAccessError):
    """A grant mutation was requested without a usable companion id."""

    def __init__(self, message: str = "A companion id is required to store a grant"):
        super().__init__(message, ErrorCode.INVALID_GRANT)


class SessionError(CompanionAccessError):
    """The caller's session cannot be used for an API call."""

    def __init__(self, message: str, error_code: ErrorCode = ErrorCode.MISSING_ACCESS_TOKEN):
        super().__init__(message, error_code)


class MissingCallerError(CompanionAccessError):
    """An access fetch was requested before the caller identity was known."""

    def __init__(self, message: str = "Caller identity is not set. Please sign in again."):
        super().__init__(message, ErrorCode.MISSING_CALLER)


class AccessApiError(CompanionAccessError):
    """The parent-companion API returned an error or could not be reached."""

    def __init__(self, message: str, status_code: int = 0, original_error: Optional[Exception] = None):
        details: Dict[str, Any] = {"status_code": status_code}
        if original_error:
            details["original_error"] = str(original_error)

        super().__init__(message, ErrorCode.API_ERROR, details=details)
        self.status_code = status_code


def describe_error(exc: BaseException, fallback: str) -> str:
    """Turn any collaborator failure into the string stored on the error slice."""
    if isinstance(exc, CompanionAccessError):
        return exc.message
    text = str(exc).strip()
    return text or fallback
