"""Error kinds raised by the service layer and their classification for API responses."""

from enum import Enum

from pydantic import BaseModel


class QuestlogError(Exception):
    """Base class for errors surfaced to callers of the service layer."""


class NotAuthenticatedError(QuestlogError):
    """No valid session (or bad credentials) at the time of a call."""


class NotFoundError(QuestlogError):
    """Referenced record does not exist or does not belong to the caller."""


class PersistenceError(QuestlogError):
    """The record store or blob store is unreachable or rejected the write."""


class ValidationFailedError(QuestlogError):
    """Input rejected before reaching the store (empty title, bad reward, ...)."""


class InvalidStateError(QuestlogError):
    """Requested transition is not allowed from the record's current state."""


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_NOT_AUTHENTICATED = "ERR_NOT_AUTHENTICATED"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_PERSISTENCE_FAILURE = "ERR_PERSISTENCE_FAILURE"
    ERR_VALIDATION_FAILED = "ERR_VALIDATION_FAILED"
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity
    status_code: int = 500


def classify_error_with_response(exception: Exception) -> ErrorResponse:  # noqa: PLR0911
    """Classify an error and return a structured response with recovery suggestions.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, severity and HTTP status
    """
    if isinstance(exception, NotAuthenticatedError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_AUTHENTICATED,
            message="You need to sign in to do that.",
            suggestion="Sign in again and retry.",
            severity=ErrorSeverity.MEDIUM,
            status_code=401,
        )

    if isinstance(exception, NotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            message="I couldn't find that quest.",
            suggestion="Refresh your quest list and try again.",
            severity=ErrorSeverity.LOW,
            status_code=404,
        )

    if isinstance(exception, ValidationFailedError):
        return ErrorResponse(
            code=ErrorCode.ERR_VALIDATION_FAILED,
            message=str(exception) or "The request was not valid.",
            suggestion="Check the submitted fields and try again.",
            severity=ErrorSeverity.LOW,
            status_code=422,
        )

    if isinstance(exception, InvalidStateError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_STATE_TRANSITION,
            message="This action cannot be performed in the current state.",
            suggestion="Refresh your quest list; the quest may already be completed.",
            severity=ErrorSeverity.LOW,
            status_code=409,
        )

    if isinstance(exception, PersistenceError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERSISTENCE_FAILURE,
            message="Your change could not be saved.",
            suggestion="Nothing was applied. Please try again in a moment.",
            severity=ErrorSeverity.HIGH,
            status_code=503,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
        status_code=500,
    )
