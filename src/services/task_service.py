"""Task mutation service: load, authorize, validate, derive, persist.

Every operation re-reads the task, so nothing is cached between calls. The
single write per operation is guarded by the task's revision; if another
request persisted in between, ConflictError is raised and the caller is
expected to reload and retry.
"""

import logging
from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from src.core import db_client
from src.core.config import constants
from src.core.errors import ConflictError, InvalidArgumentError, NotFoundError, UnavailableError
from src.core.logging import log_with_user_context, span
from src.domain.create_models import TaskCreate
from src.domain.task import ChecklistItem, Task, TaskStatus, TaskVerification
from src.domain.update_models import ChecklistUpdate, StatusUpdate, TaskFieldsUpdate
from src.domain.user import Actor
from src.services.task_authorizer import TaskAction, require_authorized
from src.services.task_progress import derive_progress


logger = logging.getLogger(__name__)

COLLECTION = "tasks"

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse_payload(model: type[ModelT], payload: object) -> ModelT:
    """Validate a raw payload, mapping validation failures to InvalidArgumentError."""
    if isinstance(payload, model):
        return payload
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc']) or 'payload'}: {err['msg']}" for err in e.errors()
        )
        raise InvalidArgumentError(f"Invalid {model.__name__}: {details}") from e


def _coerce_status(value: object) -> TaskStatus | None:
    try:
        return TaskStatus(value)
    except (ValueError, TypeError):
        return None


def _checklist_data(checklist: list[ChecklistItem]) -> list[dict[str, Any]]:
    return [item.model_dump() for item in checklist]


async def load_task(task_id: str) -> Task:
    """Fetch a task, translating store errors into the engine taxonomy."""
    try:
        record = await db_client.get_record(collection=COLLECTION, record_id=task_id)
    except db_client.RecordNotFoundError as e:
        raise NotFoundError(f"Task not found: {task_id}") from e
    except db_client.DatabaseError as e:
        raise UnavailableError(f"Task store unavailable: {e}") from e
    return Task.model_validate(record)


async def _persist(task: Task, data: dict[str, Any]) -> Task:
    """Write changes for a loaded task, conditional on its revision being current."""
    try:
        record = await db_client.update_record(
            collection=COLLECTION,
            record_id=task.id,
            data=data,
            expected_revision=task.revision,
        )
    except db_client.RevisionConflictError as e:
        raise ConflictError(f"Task {task.id} was modified concurrently; reload and retry") from e
    except db_client.RecordNotFoundError as e:
        raise NotFoundError(f"Task not found: {task.id}") from e
    except db_client.DatabaseError as e:
        raise UnavailableError(f"Task store unavailable: {e}") from e
    return Task.model_validate(record)


async def create_task(*, actor: Actor, payload: TaskCreate | dict[str, Any]) -> Task:
    """Create a task with status and progress derived from its initial checklist.

    Args:
        actor: Caller; must be an admin
        payload: Task fields (title, description, priority, due_date, assigned_to, checklist, attachments)

    Returns:
        Created task

    Raises:
        ForbiddenError: If the actor is not an admin
        InvalidArgumentError: If the payload is malformed (e.g. assigned_to not an array)
        UnavailableError: If the store fails
    """
    with span("task_service.create_task"):
        require_authorized(actor=actor, task=None, action=TaskAction.CREATE)
        task_create = _parse_payload(TaskCreate, payload)

        derived = derive_progress(task_create.checklist)
        task_data: dict[str, Any] = {
            "title": task_create.title,
            "description": task_create.description,
            "priority": task_create.priority,
            "due_date": task_create.due_date,
            "assigned_to": task_create.assigned_to,
            "created_by": actor.id,
            "checklist": _checklist_data(derived.checklist),
            "attachments": task_create.attachments,
            "status": derived.status,
            "progress": derived.progress,
            "revision": 1,
        }

        try:
            record = await db_client.create_record(collection=COLLECTION, data=task_data)
        except db_client.DatabaseError as e:
            raise UnavailableError(f"Task store unavailable: {e}") from e

        task = Task.model_validate(record)
        log_with_user_context(
            logger,
            "info",
            "Created task",
            user_id=actor.id,
            task_id=task.id,
            assignees=len(task.assigned_to),
        )
        return task


async def get_task(*, actor: Actor, task_id: str) -> Task:
    """Get a task visible to the actor (admin or assignee)."""
    with span("task_service.get_task"):
        task = await load_task(task_id)
        require_authorized(actor=actor, task=task, action=TaskAction.VIEW)
        return task


async def list_tasks(*, actor: Actor, status: str | None = None) -> list[Task]:
    """List tasks visible to the actor, newest first.

    Admins see every task, members only tasks assigned to them.

    Raises:
        InvalidArgumentError: If the status filter is not a known status
    """
    with span("task_service.list_tasks"):
        filters = []
        if not actor.is_admin:
            filters.append(f'assigned_to ?= "{db_client.sanitize_param(actor.id)}"')
        if status:
            requested = _coerce_status(status)
            if requested is None:
                raise InvalidArgumentError(f"Invalid status filter: {status}")
            filters.append(f'status = "{requested}"')

        per_page = constants.DEFAULT_PER_PAGE_LIMIT
        records: list[dict] = []
        page = 1
        while True:
            try:
                batch = await db_client.list_records(
                    collection=COLLECTION,
                    filter_query=" && ".join(filters),
                    sort="-created",
                    page=page,
                    per_page=per_page,
                )
            except db_client.DatabaseError as e:
                raise UnavailableError(f"Task store unavailable: {e}") from e
            records.extend(batch)
            if len(batch) < per_page:
                break
            page += 1

        return [Task.model_validate(record) for record in records]


async def update_checklist(*, actor: Actor, task_id: str, checklist: object) -> Task:
    """Replace a task's checklist and re-derive its progress and status.

    Args:
        actor: Caller; must be an admin or an assignee
        task_id: Task ID
        checklist: New checklist, a list of {text, completed}

    Returns:
        Updated task

    Raises:
        NotFoundError: If the task does not exist
        ForbiddenError: If the actor is neither admin nor assignee
        InvalidArgumentError: If the checklist is not a list of items
        ConflictError: If the task changed since it was loaded
    """
    with span("task_service.update_checklist"):
        task = await load_task(task_id)
        require_authorized(actor=actor, task=task, action=TaskAction.UPDATE_CHECKLIST)
        checklist_update = _parse_payload(ChecklistUpdate, {"checklist": checklist})

        derived = derive_progress(checklist_update.checklist)
        updated = await _persist(
            task,
            {
                "checklist": _checklist_data(derived.checklist),
                "progress": derived.progress,
                "status": derived.status,
            },
        )

        log_with_user_context(
            logger,
            "info",
            "Checklist updated",
            user_id=actor.id,
            task_id=task_id,
            status=updated.status,
            progress=updated.progress,
        )
        return updated


async def set_status(*, actor: Actor, task_id: str, status: object) -> Task:
    """Set a task's status directly.

    COMPLETED (admin only) ticks every checklist item and forces progress to
    100. Any other status is written as given without touching the checklist
    or progress; this is the manual override path.

    Raises:
        NotFoundError: If the task does not exist
        ForbiddenError: If the actor is neither admin nor assignee, or a member requests COMPLETED
        InvalidArgumentError: If the status is not one of the four known values
        ConflictError: If the task changed since it was loaded
    """
    with span("task_service.set_status"):
        task = await load_task(task_id)
        require_authorized(
            actor=actor,
            task=task,
            action=TaskAction.SET_STATUS,
            requested_status=_coerce_status(status),
        )
        requested = _parse_payload(StatusUpdate, {"status": status}).status

        data: dict[str, Any] = {"status": requested}
        if requested == TaskStatus.COMPLETED:
            derived = derive_progress(task.checklist, requested_status=requested)
            data["checklist"] = _checklist_data(derived.checklist)
            data["progress"] = derived.progress

        updated = await _persist(task, data)

        log_with_user_context(
            logger,
            "info",
            "Task status set",
            user_id=actor.id,
            task_id=task_id,
            previous_status=task.status,
            status=updated.status,
        )
        return updated


async def verify_task(*, actor: Actor, task_id: str) -> TaskVerification:
    """Mark a task as verified and COMPLETED.

    Re-verifying an already verified task is allowed and only refreshes
    verified_by and verified_at. The checklist is left as it is.

    Raises:
        NotFoundError: If the task does not exist
        ForbiddenError: If the actor is not an admin
        ConflictError: If the task changed since it was loaded
    """
    with span("task_service.verify_task"):
        task = await load_task(task_id)
        require_authorized(actor=actor, task=task, action=TaskAction.VERIFY)

        updated = await _persist(
            task,
            {
                "status": TaskStatus.COMPLETED,
                "progress": constants.PROGRESS_COMPLETE,
                "verified_by": actor.id,
                "verified_at": datetime.now(UTC),
            },
        )

        log_with_user_context(
            logger,
            "info",
            "Task verified",
            user_id=actor.id,
            task_id=task_id,
            previous_status=task.status,
        )

        # verified_by/verified_at are written together, so both are set here
        return TaskVerification(
            id=updated.id,
            title=updated.title,
            status=updated.status,
            verified_by=updated.verified_by,
            verified_at=updated.verified_at,
        )


async def edit_task_fields(*, actor: Actor, task_id: str, fields: TaskFieldsUpdate | dict[str, Any]) -> Task:
    """Apply a partial admin edit; absent or null fields keep their value.

    A replaced checklist re-derives progress and status.

    Raises:
        NotFoundError: If the task does not exist
        ForbiddenError: If the actor is not an admin
        InvalidArgumentError: If a field is malformed (e.g. assigned_to not an array)
        ConflictError: If the task changed since it was loaded
    """
    with span("task_service.edit_task_fields"):
        task = await load_task(task_id)
        require_authorized(actor=actor, task=task, action=TaskAction.EDIT_FIELDS)
        update = _parse_payload(TaskFieldsUpdate, fields)

        data = {key: value for key, value in update.model_dump(exclude_unset=True).items() if value is not None}
        if not data:
            logger.debug("No fields to update", extra={"task_id": task_id})
            return task

        if update.checklist is not None:
            derived = derive_progress(update.checklist)
            data["checklist"] = _checklist_data(derived.checklist)
            data["progress"] = derived.progress
            data["status"] = derived.status

        updated = await _persist(task, data)

        log_with_user_context(
            logger,
            "info",
            "Task fields updated",
            user_id=actor.id,
            task_id=task_id,
            fields=sorted(data),
        )
        return updated


async def delete_task(*, actor: Actor, task_id: str) -> None:
    """Permanently delete a task.

    Raises:
        NotFoundError: If the task does not exist
        ForbiddenError: If the actor is not an admin
    """
    with span("task_service.delete_task"):
        task = await load_task(task_id)
        require_authorized(actor=actor, task=task, action=TaskAction.DELETE)

        try:
            await db_client.delete_record(collection=COLLECTION, record_id=task.id)
        except db_client.RecordNotFoundError as e:
            raise NotFoundError(f"Task not found: {task_id}") from e
        except db_client.DatabaseError as e:
            raise UnavailableError(f"Task store unavailable: {e}") from e

        log_with_user_context(logger, "info", "Task deleted", user_id=actor.id, task_id=task_id)


async def add_attachment_references(*, task: Task, references: list[str]) -> Task:
    """Append attachment references to a loaded task through the revision-checked write."""
    return await _persist(task, {"attachments": [*task.attachments, *references]})
