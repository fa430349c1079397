"""Error taxonomy for the task engine and its mapping to API responses."""

from enum import Enum

from pydantic import BaseModel

from src.core.config import constants


class ErrorCategory(Enum):
    """Categories of errors surfaced by task operations."""

    NOT_FOUND = "not_found"
    INVALID_ARGUMENT = "invalid_argument"
    FORBIDDEN = "forbidden"
    CONFLICT = "conflict"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


class ErrorCode:
    """Error codes for specific error conditions."""

    ERR_TASK_NOT_FOUND = "ERR_TASK_NOT_FOUND"
    ERR_INVALID_ARGUMENT = "ERR_INVALID_ARGUMENT"
    ERR_PERMISSION_DENIED = "ERR_PERMISSION_DENIED"
    ERR_REVISION_CONFLICT = "ERR_REVISION_CONFLICT"
    ERR_STORE_UNAVAILABLE = "ERR_STORE_UNAVAILABLE"
    ERR_UNKNOWN = "ERR_UNKNOWN"


class TaskEngineError(Exception):
    """Base class for failures raised by task operations."""

    category: ErrorCategory = ErrorCategory.UNKNOWN


class NotFoundError(TaskEngineError):
    """Referenced task or attachment does not exist."""

    category = ErrorCategory.NOT_FOUND


class InvalidArgumentError(TaskEngineError):
    """Malformed checklist, assignment, status or field value."""

    category = ErrorCategory.INVALID_ARGUMENT


class ForbiddenError(TaskEngineError):
    """Actor is not authorized for the requested action."""

    category = ErrorCategory.FORBIDDEN


class ConflictError(TaskEngineError):
    """Task changed between load and persist; caller must reload and retry."""

    category = ErrorCategory.CONFLICT


class UnavailableError(TaskEngineError):
    """Underlying store failed."""

    category = ErrorCategory.UNAVAILABLE


class ErrorResponse(BaseModel):
    """Structured error response returned to API callers."""

    code: str
    message: str
    status_code: int


_CATEGORY_RESPONSES: dict[ErrorCategory, tuple[str, int]] = {
    ErrorCategory.NOT_FOUND: (ErrorCode.ERR_TASK_NOT_FOUND, constants.HTTP_NOT_FOUND),
    ErrorCategory.INVALID_ARGUMENT: (ErrorCode.ERR_INVALID_ARGUMENT, constants.HTTP_BAD_REQUEST),
    ErrorCategory.FORBIDDEN: (ErrorCode.ERR_PERMISSION_DENIED, constants.HTTP_FORBIDDEN),
    ErrorCategory.CONFLICT: (ErrorCode.ERR_REVISION_CONFLICT, constants.HTTP_CONFLICT),
    ErrorCategory.UNAVAILABLE: (ErrorCode.ERR_STORE_UNAVAILABLE, constants.HTTP_SERVICE_UNAVAILABLE),
}


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response.

    Engine errors keep their own message. Anything else is reported as an
    unknown server error without leaking internals.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, and HTTP status code
    """
    if isinstance(exception, TaskEngineError) and exception.category in _CATEGORY_RESPONSES:
        code, status_code = _CATEGORY_RESPONSES[exception.category]
        return ErrorResponse(code=code, message=str(exception), status_code=status_code)

    return ErrorResponse(
        code=ErrorCode.ERR_UNKNOWN,
        message="An unexpected error occurred.",
        status_code=constants.HTTP_SERVER_ERROR,
    )
