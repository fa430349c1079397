"""Domain models and DTOs."""

from src.domain.create_models import AttachmentCreate, TaskCreate
from src.domain.task import Attachment, ChecklistItem, Task, TaskPriority, TaskStatus, TaskVerification
from src.domain.update_models import ChecklistUpdate, StatusUpdate, TaskFieldsUpdate
from src.domain.user import Actor, UserRole


__all__ = [
    "Actor",
    "Attachment",
    "AttachmentCreate",
    "ChecklistItem",
    "ChecklistUpdate",
    "StatusUpdate",
    "Task",
    "TaskCreate",
    "TaskFieldsUpdate",
    "TaskPriority",
    "TaskStatus",
    "TaskVerification",
    "UserRole",
]
