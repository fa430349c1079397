"""Pure progress and status derivation from a task checklist."""

from collections.abc import Sequence

from src.core.config import constants
from src.domain.task import ChecklistItem, TaskStatus
from src.models.service_models import DerivedProgress


def partial_progress(*, completed: int, total: int) -> int:
    """Scale a partial completion ratio onto 0..PROGRESS_PARTIAL_CAP, rounding half up.

    Integer arithmetic keeps the result exact (1 of 4 items gives 23, not 22).
    """
    cap = constants.PROGRESS_PARTIAL_CAP
    return (2 * completed * cap + total) // (2 * total)


def derive_progress(
    checklist: Sequence[ChecklistItem],
    requested_status: TaskStatus | None = None,
) -> DerivedProgress:
    """Derive (progress, status) from a checklist.

    A requested status of COMPLETED is an explicit override rather than a
    computation: every item is ticked and progress forced to 100, whatever the
    caller's checklist said. Any other requested status is ignored here.

    Otherwise:
    - empty list or nothing ticked -> (0, PENDING)
    - some ticked -> (round(c / n * 90), IN_PROGRESS); 100 is never reached
    - all ticked -> (100, UNVERIFIED), awaiting admin verification
    """
    items = [item.model_copy() for item in checklist]

    if requested_status == TaskStatus.COMPLETED:
        forced = [item.model_copy(update={"completed": True}) for item in items]
        return DerivedProgress(progress=constants.PROGRESS_COMPLETE, status=TaskStatus.COMPLETED, checklist=forced)

    total = len(items)
    completed = sum(1 for item in items if item.completed)

    if total == 0 or completed == 0:
        return DerivedProgress(progress=0, status=TaskStatus.PENDING, checklist=items)

    if completed == total:
        return DerivedProgress(progress=constants.PROGRESS_COMPLETE, status=TaskStatus.UNVERIFIED, checklist=items)

    return DerivedProgress(
        progress=partial_progress(completed=completed, total=total),
        status=TaskStatus.IN_PROGRESS,
        checklist=items,
    )
