from src.services import (
    analytics_service,
    attachment_service,
    task_authorizer,
    task_progress,
    task_service,
)


__all__ = [
    "analytics_service",
    "attachment_service",
    "task_authorizer",
    "task_progress",
    "task_service",
]
