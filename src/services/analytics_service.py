"""Analytics service for task status summaries and dashboards.

Key Concepts:
- Scope: admins are counted over every task, members only over tasks
  assigned to them.
- Unverified: fully checked tasks still waiting for an admin; only tasks
  with status Unverified and no verifier are counted.
- Overdue: any task not Completed whose due date has passed.
"""

import logging
from datetime import UTC, datetime

from src.core import db_client
from src.core.config import constants
from src.core.errors import UnavailableError
from src.core.logging import span
from src.domain.task import TaskPriority, TaskStatus
from src.domain.user import Actor
from src.models.service_models import DashboardData, DashboardStatistics, RecentTask, StatusSummary


logger = logging.getLogger(__name__)

COLLECTION = "tasks"


def _scope_filter(actor: Actor) -> str:
    """Filter restricting counts to the tasks the actor can see."""
    if actor.is_admin:
        return ""
    return f'assigned_to ?= "{db_client.sanitize_param(actor.id)}"'


def _combine(*filters: str) -> str:
    return " && ".join(f for f in filters if f)


async def _count(filter_query: str) -> int:
    try:
        return await db_client.count_records(collection=COLLECTION, filter_query=filter_query)
    except db_client.DatabaseError as e:
        raise UnavailableError(f"Task store unavailable: {e}") from e


async def _count_by_status(scope: str) -> dict[TaskStatus, int]:
    return {status: await _count(_combine(scope, f'status = "{status}"')) for status in TaskStatus}


async def get_status_summary(*, actor: Actor) -> StatusSummary:
    """Count the actor's visible tasks per status.

    Args:
        actor: Caller whose role decides the scope

    Returns:
        StatusSummary with all/pending/in-progress/unverified/completed counts
    """
    with span("analytics_service.get_status_summary"):
        scope = _scope_filter(actor)
        by_status = await _count_by_status(scope)
        unverified = await _count(_combine(scope, f'status = "{TaskStatus.UNVERIFIED}" && verified_by = ""'))

        return StatusSummary(
            all=await _count(scope),
            pending_tasks=by_status[TaskStatus.PENDING],
            in_progress_tasks=by_status[TaskStatus.IN_PROGRESS],
            unverified_tasks=unverified,
            completed_tasks=by_status[TaskStatus.COMPLETED],
        )


async def get_dashboard_data(*, actor: Actor, now: datetime | None = None) -> DashboardData:
    """Build dashboard statistics, chart distributions and the recent task list.

    Args:
        actor: Caller whose role decides the scope
        now: Reference time for overdue detection (defaults to current UTC time)

    Returns:
        DashboardData for the actor's scope
    """
    with span("analytics_service.get_dashboard_data"):
        scope = _scope_filter(actor)
        reference = (now or datetime.now(UTC)).astimezone(UTC)

        total = await _count(scope)
        by_status = await _count_by_status(scope)
        overdue = await _count(
            _combine(scope, f'status != "{TaskStatus.COMPLETED}" && due_date < "{reference.isoformat()}"')
        )
        unverified = await _count(_combine(scope, f'status = "{TaskStatus.UNVERIFIED}" && verified_by = ""'))

        # Chart keys drop the space ("In Progress" -> "InProgress")
        task_distribution = {status.value.replace(" ", ""): count for status, count in by_status.items()}
        task_distribution["All"] = total

        task_priority_levels = {
            priority.value: await _count(_combine(scope, f'priority = "{priority}"')) for priority in TaskPriority
        }

        try:
            recent_records = await db_client.list_records(
                collection=COLLECTION,
                filter_query=scope,
                sort="-created",
                per_page=constants.DASHBOARD_RECENT_TASKS_LIMIT,
            )
        except db_client.DatabaseError as e:
            raise UnavailableError(f"Task store unavailable: {e}") from e

        recent_tasks = [
            RecentTask(
                id=record["id"],
                title=record["title"],
                status=record["status"],
                priority=record["priority"],
                due_date=record["due_date"],
                created=record["created"],
            )
            for record in recent_records
        ]

        logger.debug("Built dashboard", extra={"user_id": actor.id, "total_tasks": total, "overdue_tasks": overdue})

        return DashboardData(
            statistics=DashboardStatistics(
                total_tasks=total,
                pending_tasks=by_status[TaskStatus.PENDING],
                completed_tasks=by_status[TaskStatus.COMPLETED],
                overdue_tasks=overdue,
                unverified_tasks=unverified,
            ),
            task_distribution=task_distribution,
            task_priority_levels=task_priority_levels,
            recent_tasks=recent_tasks,
        )
