"""Pydantic models for creating records in database."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from src.domain.task import ChecklistItem, TaskPriority, ensure_utc


def dedupe_user_ids(user_ids: list[str]) -> list[str]:
    """Strip, drop duplicates and keep first-seen order of an assignment set."""
    seen: dict[str, None] = {}
    for user_id in user_ids:
        cleaned = user_id.strip()
        if not cleaned:
            raise ValueError("assigned_to entries must be non-empty user IDs")
        seen.setdefault(cleaned, None)
    return list(seen)


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record."""

    title: str = Field(..., min_length=1, description="Task title")
    description: str = Field(default="", description="Detailed task description")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Task priority")
    due_date: datetime = Field(..., description="Due date")
    assigned_to: list[str] = Field(..., description="User IDs the task is assigned to")
    checklist: list[ChecklistItem] = Field(default_factory=list, description="Initial checklist")
    attachments: list[str] = Field(default_factory=list, description="Opaque attachment references")

    @field_validator("assigned_to", mode="before")
    @classmethod
    def validate_assigned_to_is_list(cls, v: object) -> object:
        """Reject anything that is not a JSON array of user IDs."""
        if not isinstance(v, list):
            raise ValueError("assigned_to must be an array of user IDs")
        return v

    @field_validator("assigned_to")
    @classmethod
    def validate_assigned_to_unique(cls, v: list[str]) -> list[str]:
        """Treat assignment as a set."""
        return dedupe_user_ids(v)

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v: datetime) -> datetime:
        """Store due dates in UTC."""
        return ensure_utc(v)

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Titles cannot be blank."""
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v


class AttachmentCreate(BaseModel):
    """Pydantic model for creating an attachment record."""

    task_id: str
    uploaded_by: str
    original_name: str
    file_path: str
    uploaded_at: str
