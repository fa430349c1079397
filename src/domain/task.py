"""Task domain models and enums."""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field, field_validator


class TaskStatus(StrEnum):
    """Task lifecycle status (derived from the checklist)."""

    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    UNVERIFIED = "Unverified"  # Fully checked, awaiting admin sign-off
    COMPLETED = "Completed"


class TaskPriority(StrEnum):
    """Task priority."""

    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and normalize aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class ChecklistItem(BaseModel):
    """Single unit of work within a task."""

    text: str = Field(..., min_length=1, description="What needs to be done")
    completed: bool = Field(default=False, description="Whether the item is ticked")


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    created: str = Field(..., description="Creation timestamp (ISO format)")
    updated: str = Field(..., description="Last update timestamp (ISO format)")
    title: str = Field(..., description="Task title")
    description: str = Field(default="", description="Detailed task description")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    due_date: datetime = Field(..., description="Due date")
    assigned_to: list[str] = Field(default_factory=list, description="Assignee user IDs")
    created_by: str = Field(..., description="User ID of the admin who created the task")
    checklist: list[ChecklistItem] = Field(default_factory=list, description="Ordered checklist items")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Derived lifecycle status")
    progress: int = Field(default=0, ge=0, le=100, description="Derived completion percentage")
    verified_by: str | None = Field(default=None, description="Admin who verified completion")
    verified_at: datetime | None = Field(default=None, description="When the task was verified")
    attachments: list[str] = Field(default_factory=list, description="Opaque attachment references")
    revision: int = Field(default=1, description="Optimistic concurrency token")

    @field_validator("due_date", "verified_at")
    @classmethod
    def normalize_timezone(cls, v: datetime | None) -> datetime | None:
        """Store all timestamps in UTC."""
        return ensure_utc(v) if v is not None else None

    def is_assignee(self, user_id: str) -> bool:
        """Return True if the user is in the task's assignment set."""
        return user_id in self.assigned_to

    @property
    def completed_todo_count(self) -> int:
        """Number of ticked checklist items."""
        return sum(1 for item in self.checklist if item.completed)


class TaskVerification(BaseModel):
    """Projection returned after an admin verifies a task."""

    id: str
    title: str
    status: TaskStatus
    verified_by: str
    verified_at: datetime


class Attachment(BaseModel):
    """Metadata for a file uploaded to a task."""

    id: str
    task_id: str
    uploaded_by: str
    original_name: str
    file_path: str
    uploaded_at: str
