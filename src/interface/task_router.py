"""Task API router."""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, Query, status

from src.domain.task import Task
from src.domain.user import Actor
from src.interface.dependencies import get_actor
from src.services import analytics_service, task_service


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def _task_payload(task: Task) -> dict[str, Any]:
    return task.model_dump(mode="json")


def _body_field(payload: Any, name: str) -> Any:
    """Field of a JSON object body; other bodies carry no fields and fail service validation."""
    return payload.get(name) if isinstance(payload, dict) else None


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_task(payload: Any = Body(...), actor: Actor = Depends(get_actor)) -> dict[str, Any]:
    """Create a new task (admin only)."""
    task = await task_service.create_task(actor=actor, payload=payload)
    return {"message": "Task created successfully", "task": _task_payload(task)}


@router.get("")
async def list_tasks(
    status_filter: str | None = Query(default=None, alias="status"),
    actor: Actor = Depends(get_actor),
) -> dict[str, Any]:
    """List visible tasks with a per-status summary."""
    tasks = await task_service.list_tasks(actor=actor, status=status_filter)
    summary = await analytics_service.get_status_summary(actor=actor)
    return {
        "tasks": [{**_task_payload(task), "completed_todo_count": task.completed_todo_count} for task in tasks],
        "status_summary": summary.model_dump(),
    }


@router.get("/dashboard")
async def get_dashboard(actor: Actor = Depends(get_actor)) -> dict[str, Any]:
    """Dashboard data; admins see every task, members their own."""
    dashboard = await analytics_service.get_dashboard_data(actor=actor)
    return dashboard.model_dump(mode="json")


@router.get("/{task_id}")
async def get_task(task_id: str, actor: Actor = Depends(get_actor)) -> dict[str, Any]:
    """Get a single task."""
    task = await task_service.get_task(actor=actor, task_id=task_id)
    return _task_payload(task)


@router.put("/{task_id}")
async def edit_task(
    task_id: str,
    payload: Any = Body(...),
    actor: Actor = Depends(get_actor),
) -> dict[str, Any]:
    """Edit task details (admin only, partial update)."""
    task = await task_service.edit_task_fields(actor=actor, task_id=task_id, fields=payload)
    return {"message": "Task updated successfully", "task": _task_payload(task)}


@router.delete("/{task_id}")
async def delete_task(task_id: str, actor: Actor = Depends(get_actor)) -> dict[str, str]:
    """Delete a task (admin only)."""
    await task_service.delete_task(actor=actor, task_id=task_id)
    return {"message": "Task deleted successfully"}


@router.put("/{task_id}/status")
async def update_task_status(
    task_id: str,
    payload: Any = Body(...),
    actor: Actor = Depends(get_actor),
) -> dict[str, Any]:
    """Set task status (assignees cannot set Completed)."""
    task = await task_service.set_status(actor=actor, task_id=task_id, status=_body_field(payload, "status"))
    return {"message": "Task status updated", "task": _task_payload(task)}


@router.put("/{task_id}/checklist")
async def update_task_checklist(
    task_id: str,
    payload: Any = Body(...),
    actor: Actor = Depends(get_actor),
) -> dict[str, Any]:
    """Replace the checklist and re-derive progress."""
    task = await task_service.update_checklist(
        actor=actor, task_id=task_id, checklist=_body_field(payload, "checklist")
    )
    return {"message": "Checklist updated", "task": _task_payload(task)}


@router.put("/{task_id}/verify")
async def verify_task(task_id: str, actor: Actor = Depends(get_actor)) -> dict[str, Any]:
    """Verify a task and mark it completed (admin only)."""
    verification = await task_service.verify_task(actor=actor, task_id=task_id)
    return {**verification.model_dump(mode="json"), "message": "Task verified and marked as completed"}
