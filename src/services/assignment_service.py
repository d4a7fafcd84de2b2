"""Task assignments, including the ones created implicitly by completions."""

import logging
from typing import Any

from src.core import db_client
from src.core.logging import span
from src.services.recurrence import parse_calendar_date


logger = logging.getLogger(__name__)

COLLECTION = "task_assignments"


async def create_assignment(
    *,
    task_id: str,
    due_date: str,
    assigned_to: str | None = None,
    assigned_by: str | None = None,
    auto_created: bool = False,
) -> dict[str, Any]:
    """Create an assignment record.

    Raises:
        InvalidInputError: If due_date is not an ISO date
    """
    with span("assignment_service.create_assignment"):
        day = parse_calendar_date(due_date)
        data: dict[str, Any] = {
            "task_id": task_id,
            "due_date": day.isoformat(),
            "completed": False,
            "auto_created": auto_created,
        }
        # Only set relations when we have a valid ID (relations can't be empty string)
        if assigned_to:
            data["assigned_to"] = assigned_to
        if assigned_by:
            data["assigned_by"] = assigned_by

        record = await db_client.create_record(collection=COLLECTION, data=data)
        logger.info(
            "Created %s assignment of task %s for %s on %s",
            "auto" if auto_created else "explicit",
            task_id,
            assigned_to or "anyone",
            day.isoformat(),
        )
        return record


async def find_open_assignment(*, task_id: str, member_id: str, due_date: str) -> dict[str, Any] | None:
    """Uncompleted assignment of task to member (or to nobody) on due_date."""
    with span("assignment_service.find_open_assignment"):
        base = (
            f'task_id = "{db_client.sanitize_param(task_id)}" && '
            f'due_date = "{db_client.sanitize_param(due_date)}" && '
            'completed = false'
        )
        assignment = await db_client.get_first_record(
            collection=COLLECTION,
            filter_query=f'{base} && assigned_to = "{db_client.sanitize_param(member_id)}"',
        )
        if assignment:
            return assignment
        return await db_client.get_first_record(
            collection=COLLECTION,
            filter_query=f'{base} && assigned_to = ""',
        )


async def assignment_for_completion(
    *, task_id: str, member_id: str, completed_on: str
) -> tuple[dict[str, Any], bool]:
    """Use the open assignment for that day or create one dated completed_on, then mark it completed.

    Returns (assignment, created) where created tells whether the assignment
    was made for this completion.

    The auto-created assignment is dated by the completion date, not the
    wall-clock date, so backdated completions land on the right day.
    """
    assignment = await find_open_assignment(task_id=task_id, member_id=member_id, due_date=completed_on)
    created = assignment is None
    if assignment is None:
        assignment = await create_assignment(
            task_id=task_id,
            due_date=completed_on,
            assigned_to=member_id,
            auto_created=True,
        )
    updated = await db_client.update_record(
        collection=COLLECTION,
        record_id=assignment["id"],
        data={"completed": True},
    )
    return updated, created


async def release_assignment(*, assignment_id: str) -> None:
    """Called after a completion was removed.

    If no other completion still references the assignment, an auto-created
    assignment is deleted and an explicit one is reopened.
    """
    with span("assignment_service.release_assignment"):
        try:
            assignment = await db_client.get_record(collection=COLLECTION, record_id=assignment_id)
        except db_client.RecordNotFoundError:
            logger.warning("Assignment %s already gone", assignment_id)
            return

        remaining = await db_client.get_first_record(
            collection="task_completions",
            filter_query=f'assignment_id = "{db_client.sanitize_param(assignment_id)}"',
        )
        if remaining:
            return

        if assignment.get("auto_created"):
            await db_client.delete_record(collection=COLLECTION, record_id=assignment_id)
            logger.info("Deleted auto-created assignment %s", assignment_id)
        else:
            await db_client.update_record(collection=COLLECTION, record_id=assignment_id, data={"completed": False})
            logger.info("Reopened assignment %s", assignment_id)


async def revert_assignment(*, assignment_id: str, created: bool) -> None:
    """Undo assignment_for_completion after the completion could not be saved."""
    if created:
        await db_client.delete_record(collection=COLLECTION, record_id=assignment_id)
    else:
        await db_client.update_record(collection=COLLECTION, record_id=assignment_id, data={"completed": False})
