"""Unit tests for error classification utilities."""

import pytest

from src.core.errors import (
    ConflictError,
    ErrorCategory,
    ErrorCode,
    ForbiddenError,
    InvalidArgumentError,
    NotFoundError,
    UnavailableError,
    classify_error_with_response,
)


@pytest.mark.unit
class TestClassifyErrorWithResponse:
    """Tests for classify_error_with_response function."""

    @pytest.mark.parametrize(
        ("exception", "code", "status_code"),
        [
            (NotFoundError("Task not found: 1"), ErrorCode.ERR_TASK_NOT_FOUND, 404),
            (InvalidArgumentError("checklist must be an array"), ErrorCode.ERR_INVALID_ARGUMENT, 400),
            (ForbiddenError("Not authorized to verify this task"), ErrorCode.ERR_PERMISSION_DENIED, 403),
            (ConflictError("reload and retry"), ErrorCode.ERR_REVISION_CONFLICT, 409),
            (UnavailableError("Task store unavailable"), ErrorCode.ERR_STORE_UNAVAILABLE, 503),
        ],
    )
    def test_engine_errors(self, exception, code, status_code):
        """Test engine errors map to their code and HTTP status and keep the message."""
        response = classify_error_with_response(exception)

        assert response.code == code
        assert response.status_code == status_code
        assert response.message == str(exception)

    def test_unknown_error_hides_details(self):
        """Test unexpected errors do not leak internals."""
        response = classify_error_with_response(RuntimeError("sqlite3.OperationalError at /srv/db"))

        assert response.code == ErrorCode.ERR_UNKNOWN
        assert response.status_code == 500
        assert response.message == "An unexpected error occurred."

    def test_categories(self):
        """Test each engine error carries its category."""
        assert NotFoundError().category == ErrorCategory.NOT_FOUND
        assert ConflictError().category == ErrorCategory.CONFLICT
        assert UnavailableError().category == ErrorCategory.UNAVAILABLE
