"""Map task engine errors onto HTTP responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.errors import ErrorCategory, TaskEngineError, classify_error_with_response


logger = logging.getLogger(__name__)


async def handle_task_engine_error(request: Request, exc: TaskEngineError) -> JSONResponse:
    """Render an engine error as ``{code, message}`` with its status code."""
    response = classify_error_with_response(exc)
    level = logging.ERROR if exc.category == ErrorCategory.UNAVAILABLE else logging.INFO
    logger.log(
        level,
        "task_request_failed",
        extra={"path": request.url.path, "code": response.code, "status_code": response.status_code},
    )
    return JSONResponse(
        status_code=response.status_code,
        content={"code": response.code, "message": response.message},
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install engine error handlers on an application."""
    app.add_exception_handler(TaskEngineError, handle_task_engine_error)  # type: ignore[arg-type]
