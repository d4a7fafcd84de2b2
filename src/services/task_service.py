"""Task catalogue: CRUD, explicit assignments and the due-on-day listing."""

import logging
from typing import Any

from src.core import db_client
from src.core.errors import AccountingError, InvalidInputError
from src.core.events import RefreshNotifier, RefreshReason, notify_refresh
from src.core.logging import span
from src.domain.create_models import TaskCreate, TaskUpdate
from src.domain.task import Task, TaskAssignment
from src.models.service_models import DueTask, OperationResult
from src.services import assignment_service, balance_service, member_service
from src.services.member_service import Permission
from src.services.recurrence import due_tasks


logger = logging.getLogger(__name__)

COLLECTION = "tasks"


async def get_task(*, task_id: str) -> Task:
    """Get task by ID.

    Raises:
        db_client.RecordNotFoundError: If task not found
    """
    record = await db_client.get_record(collection=COLLECTION, record_id=task_id)
    return Task.model_validate(record)


async def get_tasks(*, family_id: str, include_inactive: bool = False) -> list[Task]:
    """Tasks of a family in creation order."""
    with span("task_service.get_tasks"):
        filters = [f'family_id = "{db_client.sanitize_param(family_id)}"']
        if not include_inactive:
            filters.append("is_active = true")

        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=" && ".join(filters),
            sort="created",
        )
        return [Task.model_validate(record) for record in records]


async def _authorized_actor(*, actor_id: str, family_id: str, permission: Permission) -> None:
    actor = await member_service.get_member(member_id=actor_id)
    member_service.require_same_family(actor, family_id)
    member_service.require_permission(actor, permission)


async def create_task(
    *,
    family_id: str,
    actor_id: str,
    params: TaskCreate,
    notifier: RefreshNotifier | None = None,
) -> Task:
    """Create a task in a family (admins and members).

    Raises:
        PermissionDeniedError: If the actor may not edit tasks
    """
    with span("task_service.create_task"):
        await _authorized_actor(actor_id=actor_id, family_id=family_id, permission=Permission.EDIT_TASKS)

        data: dict[str, Any] = params.model_dump(exclude_none=True)
        data["family_id"] = family_id
        data["created_by"] = actor_id

        record = await db_client.create_record(collection=COLLECTION, data=data)
        logger.info("Created task '%s' (%d points) in family %s", params.title, params.points, family_id)
        await notify_refresh(notifier, family_id, RefreshReason.TASKS_CHANGED)
        return Task.model_validate(record)


async def update_task(
    *,
    task_id: str,
    actor_id: str,
    params: TaskUpdate,
    notifier: RefreshNotifier | None = None,
) -> Task:
    """Apply a partial update to a task.

    Changing points only affects future completions; recorded ledger entries
    are never rewritten.

    Raises:
        InvalidInputError: If nothing is being updated
    """
    with span("task_service.update_task"):
        task = await get_task(task_id=task_id)
        await _authorized_actor(actor_id=actor_id, family_id=task.family_id, permission=Permission.EDIT_TASKS)

        data = params.model_dump(exclude_unset=True)
        if not data:
            raise InvalidInputError("No task fields to update")

        record = await db_client.update_record(collection=COLLECTION, record_id=task_id, data=data)
        logger.info("Updated task %s: %s", task_id, sorted(data))
        await notify_refresh(notifier, task.family_id, RefreshReason.TASKS_CHANGED)
        return Task.model_validate(record)


async def deactivate_task(*, task_id: str, actor_id: str, notifier: RefreshNotifier | None = None) -> Task:
    """Soft-disable a task. Its history and points stay untouched."""
    return await update_task(
        task_id=task_id,
        actor_id=actor_id,
        params=TaskUpdate(is_active=False),
        notifier=notifier,
    )


async def delete_task(*, task_id: str, actor_id: str, notifier: RefreshNotifier | None = None) -> None:
    """Hard-delete a task with its completions and assignments.

    Each completion is undone through the balance engine first, so points
    earned from the task are taken back from the ledger and the balances.
    """
    with span("task_service.delete_task"):
        task = await get_task(task_id=task_id)
        await _authorized_actor(actor_id=actor_id, family_id=task.family_id, permission=Permission.EDIT_TASKS)

        sanitized = db_client.sanitize_param(task_id)
        completions = await db_client.list_all_records(
            collection="task_completions",
            filter_query=f'task_id = "{sanitized}"',
        )
        for completion in completions:
            await balance_service.undo_completion(completion=completion)

        assignments = await db_client.list_all_records(
            collection=assignment_service.COLLECTION,
            filter_query=f'task_id = "{sanitized}"',
        )
        for assignment in assignments:
            await db_client.delete_record(collection=assignment_service.COLLECTION, record_id=assignment["id"])

        await db_client.delete_record(collection=COLLECTION, record_id=task_id)
        logger.info(
            "Deleted task %s with %d completions and %d assignments",
            task_id,
            len(completions),
            len(assignments),
        )
        await notify_refresh(notifier, task.family_id, RefreshReason.TASKS_CHANGED)


async def assign_task(
    *,
    task_id: str,
    actor_id: str,
    due_date: str,
    member_id: str | None = None,
    notifier: RefreshNotifier | None = None,
) -> TaskAssignment:
    """Assign a task to a member (or to anyone) for a date.

    Raises:
        PermissionDeniedError: If the actor may not assign tasks or the assignee is in another family
        InvalidInputError: If due_date is not an ISO date
    """
    with span("task_service.assign_task"):
        task = await get_task(task_id=task_id)
        await _authorized_actor(actor_id=actor_id, family_id=task.family_id, permission=Permission.ASSIGN_TASKS)
        if member_id:
            assignee = await member_service.get_member(member_id=member_id)
            member_service.require_same_family(assignee, task.family_id)

        record = await assignment_service.create_assignment(
            task_id=task_id,
            due_date=due_date,
            assigned_to=member_id,
            assigned_by=actor_id,
        )
        await notify_refresh(notifier, task.family_id, RefreshReason.TASKS_CHANGED)
        return TaskAssignment.model_validate(record)


async def tasks_due_on(*, family_id: str, date_str: str) -> OperationResult[list[DueTask]]:
    """Active tasks of a family that are due on date_str.

    original_index refers to the position in the family's active task list.
    """
    with span("task_service.tasks_due_on"):
        try:
            tasks = await get_tasks(family_id=family_id)
            return OperationResult.success(due_tasks(tasks, date_str))
        except AccountingError as e:
            logger.warning("tasks_due_on failed for family %s on %s: %s", family_id, date_str, e)
            return OperationResult.failure(e)
