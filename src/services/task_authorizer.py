"""Role and assignment based authorization for task actions."""

import logging
from enum import StrEnum

from src.core.errors import ForbiddenError
from src.domain.task import Task, TaskStatus
from src.domain.user import Actor
from src.models.service_models import AuthorizationDecision


logger = logging.getLogger(__name__)


class TaskAction(StrEnum):
    """Actions an actor can attempt on a task."""

    CREATE = "create"
    EDIT_FIELDS = "edit"
    UPDATE_CHECKLIST = "update the checklist of"
    SET_STATUS = "change the status of"
    VERIFY = "verify"
    DELETE = "delete"
    MANAGE_ATTACHMENTS = "manage attachments of"
    VIEW = "view"


ADMIN_ONLY_ACTIONS = frozenset({TaskAction.CREATE, TaskAction.EDIT_FIELDS, TaskAction.VERIFY, TaskAction.DELETE})


def _deny(action: TaskAction) -> AuthorizationDecision:
    # Same reason for every denial so nothing about other users' assignment leaks
    return AuthorizationDecision(allowed=False, reason=f"Not authorized to {action} this task")


def authorize(
    *,
    actor: Actor,
    task: Task | None,
    action: TaskAction,
    requested_status: TaskStatus | None = None,
) -> AuthorizationDecision:
    """Decide whether an actor may perform an action on a task.

    Rules:
    - create, edit, verify and delete are admin-only
    - checklist, status, attachment and view access need admin or assignee
    - nobody but an admin may set status COMPLETED directly; members get
      there by ticking the checklist and waiting for verification

    Args:
        actor: Caller identity
        task: Loaded task, or None for CREATE
        action: Attempted action
        requested_status: Target status for SET_STATUS

    Returns:
        AuthorizationDecision with allowed flag and a generic reason on denial
    """
    if actor.is_admin:
        return AuthorizationDecision(allowed=True)

    if action in ADMIN_ONLY_ACTIONS or task is None:
        return _deny(action)

    if not task.is_assignee(actor.id):
        return _deny(action)

    if action == TaskAction.SET_STATUS and requested_status == TaskStatus.COMPLETED:
        return AuthorizationDecision(allowed=False, reason="Not authorized to mark this task as completed")

    return AuthorizationDecision(allowed=True)


def require_authorized(
    *,
    actor: Actor,
    task: Task | None,
    action: TaskAction,
    requested_status: TaskStatus | None = None,
) -> None:
    """Raise ForbiddenError unless the actor may perform the action."""
    decision = authorize(actor=actor, task=task, action=action, requested_status=requested_status)
    if not decision.allowed:
        logger.warning(
            "authorization_denied",
            extra={
                "user_id": actor.id,
                "role": actor.role,
                "task_id": task.id if task else None,
                "action": action.name,
            },
        )
        raise ForbiddenError(decision.reason)
