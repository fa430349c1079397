"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from pydantic import BaseModel, Field

from src.domain.task import ChecklistItem, TaskStatus


class DerivedProgress(BaseModel):
    """Result of deriving progress and status from a checklist."""

    progress: int
    status: TaskStatus
    checklist: list[ChecklistItem]


class AuthorizationDecision(BaseModel):
    """Outcome of an authorization check."""

    allowed: bool
    reason: str | None = None


class StatusSummary(BaseModel):
    """Task counts per status, scoped to what the actor can see."""

    all: int
    pending_tasks: int
    in_progress_tasks: int
    unverified_tasks: int
    completed_tasks: int


class DashboardStatistics(BaseModel):
    """Headline numbers for the dashboard."""

    total_tasks: int
    pending_tasks: int
    completed_tasks: int
    overdue_tasks: int
    unverified_tasks: int


class RecentTask(BaseModel):
    """Compact task row for the dashboard."""

    id: str
    title: str
    status: str
    priority: str
    due_date: str
    created: str


class DashboardData(BaseModel):
    """Dashboard payload: statistics, chart data and recent tasks."""

    statistics: DashboardStatistics
    task_distribution: dict[str, int] = Field(description="Counts keyed Pending/InProgress/Unverified/Completed/All")
    task_priority_levels: dict[str, int] = Field(description="Counts keyed Low/Medium/High")
    recent_tasks: list[RecentTask]
