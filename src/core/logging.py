"""Observability setup for taskwarden, built on Pydantic Logfire.

Modules log through the standard library (``logging.getLogger(__name__)``);
Logfire picks those records up once configured at startup. Service operations
are wrapped in spans so a single request shows load, authorization and persist
as one trace.

    logger = logging.getLogger(__name__)
    logger.info("Checklist updated", extra={"task_id": "42"})
"""

import logging

import logfire
from fastapi import FastAPI

from src.core.config import settings


logger = logging.getLogger(__name__)


def configure_logfire() -> None:
    """Configure Logfire; without a token nothing is sent."""
    logfire.configure(
        token=settings.logfire_token,
        service_name="taskwarden",
        service_version="0.1.0",
        environment=settings.environment,
        send_to_logfire="if-token-present",
    )
    logger.info("Logfire configured", extra={"environment": settings.environment})


def instrument_fastapi(app: FastAPI) -> None:
    """Trace every request handled by the app."""
    logfire.instrument_fastapi(app)
    logger.info("FastAPI instrumentation configured")


def span(name: str) -> logfire.LogfireSpan:
    """Open a span named after the service operation, e.g. ``task_service.verify_task``."""
    return logfire.span(name)


def log_with_context(logger: logging.Logger, level: str, message: str, **context: object) -> None:
    """Emit ``message`` at ``level`` with the keyword arguments attached as structured fields."""
    getattr(logger, level.lower())(message, extra=context)


def log_with_user_context(
    logger: logging.Logger,
    level: str,
    message: str,
    user_id: str | None = None,
    **extra: object,
) -> None:
    """Log on behalf of the acting user.

    Args:
        logger: Logger of the calling module
        level: "debug", "info", "warning", "error" or "critical"
        message: Log message
        user_id: Acting user, omitted from the record when None
        **extra: Further fields such as task_id or status
    """
    context = {"user_id": user_id, **extra} if user_id else extra
    log_with_context(logger, level, message, **context)
