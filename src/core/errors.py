"""Error types and classification for accounting operations."""

from enum import Enum, StrEnum

from pydantic import BaseModel


class ErrorKind(StrEnum):
    """Kinds of errors an accounting operation can report."""

    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    STORAGE_FAILURE = "storage_failure"


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_NOT_FOUND = "ERR_NOT_FOUND"
    ERR_INVALID_INPUT = "ERR_INVALID_INPUT"
    ERR_INVALID_STATE_TRANSITION = "ERR_INVALID_STATE_TRANSITION"
    ERR_STORAGE_FAILURE = "ERR_STORAGE_FAILURE"
    ERR_PARTIAL_WRITE = "ERR_PARTIAL_WRITE"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class AccountingError(Exception):
    """Base class for expected accounting failures."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT


class PermissionDeniedError(AccountingError, PermissionError):
    """The acting member's role does not allow the operation."""

    kind = ErrorKind.PERMISSION_DENIED


class NotFoundError(AccountingError, KeyError):
    """A task, completion, transaction, member or family does not exist."""

    kind = ErrorKind.NOT_FOUND

    def __str__(self) -> str:
        # KeyError.__str__ wraps the message in quotes
        return str(self.args[0]) if self.args else ""


class InvalidInputError(AccountingError, ValueError):
    """Malformed date, negative point value, unknown transaction type, etc."""

    kind = ErrorKind.INVALID_INPUT


class InvalidStateTransitionError(AccountingError, ValueError):
    """A verification status change that the state machine does not allow."""

    kind = ErrorKind.INVALID_STATE_TRANSITION


class StorageFailureError(AccountingError, RuntimeError):
    """The persistence backend failed."""

    kind = ErrorKind.STORAGE_FAILURE


class PartialWriteError(StorageFailureError):
    """A storage failure whose compensation also failed, leaving records behind."""


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    kind: ErrorKind
    message: str
    suggestion: str
    severity: ErrorSeverity


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Permission and validation failures keep their message since it is written for
    the user. Storage failures are reported generically.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, kind, message, suggestion, and severity
    """
    if isinstance(exception, PermissionDeniedError):
        return ErrorResponse(
            code=ErrorCode.ERR_PERMISSION_DENIED,
            kind=ErrorKind.PERMISSION_DENIED,
            message=str(exception) or "You don't have permission for this action.",
            suggestion="Ask a family admin if you think this is an error.",
            severity=ErrorSeverity.MEDIUM,
        )

    if isinstance(exception, NotFoundError):
        return ErrorResponse(
            code=ErrorCode.ERR_NOT_FOUND,
            kind=ErrorKind.NOT_FOUND,
            message=str(exception) or "The requested record was not found.",
            suggestion="Refresh the task list and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, InvalidStateTransitionError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_STATE_TRANSITION,
            kind=ErrorKind.INVALID_STATE_TRANSITION,
            message=str(exception),
            suggestion="The completion has already been reviewed.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, InvalidInputError):
        return ErrorResponse(
            code=ErrorCode.ERR_INVALID_INPUT,
            kind=ErrorKind.INVALID_INPUT,
            message=str(exception),
            suggestion="Check the values you entered and try again.",
            severity=ErrorSeverity.LOW,
        )

    if isinstance(exception, PartialWriteError):
        return ErrorResponse(
            code=ErrorCode.ERR_PARTIAL_WRITE,
            kind=ErrorKind.STORAGE_FAILURE,
            message="Saving failed and the points could not be restored automatically.",
            suggestion="Ask a family admin to reconcile the points balance.",
            severity=ErrorSeverity.CRITICAL,
        )

    if isinstance(exception, StorageFailureError):
        return ErrorResponse(
            code=ErrorCode.ERR_STORAGE_FAILURE,
            kind=ErrorKind.STORAGE_FAILURE,
            message="Could not save your changes.",
            suggestion="Please try again in a moment.",
            severity=ErrorSeverity.HIGH,
        )

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        kind=ErrorKind.STORAGE_FAILURE,
        message="An unexpected error occurred.",
        suggestion="Please try again later.",
        severity=ErrorSeverity.HIGH,
    )
