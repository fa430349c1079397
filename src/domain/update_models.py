"""Update models for database operations."""

from datetime import datetime

from pydantic import BaseModel, field_validator

from src.domain.create_models import dedupe_user_ids
from src.domain.task import ChecklistItem, TaskPriority, TaskStatus, ensure_utc


class TaskFieldsUpdate(BaseModel):
    """Partial admin edit; only fields present in the payload are applied."""

    title: str | None = None
    description: str | None = None
    priority: TaskPriority | None = None
    due_date: datetime | None = None
    assigned_to: list[str] | None = None
    checklist: list[ChecklistItem] | None = None
    attachments: list[str] | None = None

    @field_validator("assigned_to", mode="before")
    @classmethod
    def validate_assigned_to_is_list(cls, v: object) -> object:
        """Reject anything that is not a JSON array of user IDs."""
        if v is not None and not isinstance(v, list):
            raise ValueError("assigned_to must be an array of user IDs")
        return v

    @field_validator("assigned_to")
    @classmethod
    def validate_assigned_to_unique(cls, v: list[str] | None) -> list[str] | None:
        """Treat assignment as a set."""
        return dedupe_user_ids(v) if v is not None else None

    @field_validator("checklist", mode="before")
    @classmethod
    def validate_checklist_is_list(cls, v: object) -> object:
        """Checklist replacement must be an array."""
        if v is not None and not isinstance(v, list):
            raise ValueError("checklist must be an array")
        return v

    @field_validator("due_date")
    @classmethod
    def normalize_due_date(cls, v: datetime | None) -> datetime | None:
        """Store due dates in UTC."""
        return ensure_utc(v) if v is not None else None

    @field_validator("title")
    @classmethod
    def validate_title(cls, v: str | None) -> str | None:
        """Titles cannot be blank."""
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("Title cannot be empty")
        return v


class ChecklistUpdate(BaseModel):
    """Full replacement of a task's checklist by an assignee or admin."""

    checklist: list[ChecklistItem]

    @field_validator("checklist", mode="before")
    @classmethod
    def validate_checklist_is_list(cls, v: object) -> object:
        """Checklist must be an array."""
        if not isinstance(v, list):
            raise ValueError("checklist must be an array")
        return v


class StatusUpdate(BaseModel):
    """Requested status change."""

    status: TaskStatus
