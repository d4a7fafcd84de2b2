"""Completing tasks and undoing completions."""

import logging
from datetime import datetime
from typing import Any

from src.core import db_client
from src.core.errors import AccountingError, InvalidInputError, PartialWriteError
from src.core.events import RefreshNotifier, RefreshReason, notify_refresh
from src.core.logging import span
from src.domain.completion import VerificationStatus, initial_verification_status
from src.models.service_models import (
    CompletionOutcome,
    OperationResult,
    UndoOutcome,
    completion_from_record,
    transactions_from_records,
)
from src.services import assignment_service, balance_service, ledger_service, member_service, task_service
from src.services.bonus_points import calculate_bonus_points
from src.services.completion_date import resolve_completion_timestamp
from src.services.member_service import Permission
from src.services.recurrence import parse_calendar_date


logger = logging.getLogger(__name__)

COLLECTION = "task_completions"


async def _rollback(*, assignment_id: str, assignment_created: bool, completion_id: str | None = None) -> None:
    """Remove the completion and restore the assignment after a failed completion."""
    try:
        if completion_id:
            await db_client.delete_record(collection=COLLECTION, record_id=completion_id)
        await assignment_service.revert_assignment(assignment_id=assignment_id, created=assignment_created)
    except AccountingError as e:
        logger.error("Rollback of completion %s (assignment %s) failed: %s", completion_id, assignment_id, e)
        msg = f"Completion {completion_id or 'record'} could not be rolled back"
        raise PartialWriteError(msg) from e


async def record_completion(
    *,
    task_id: str,
    member_id: str,
    selected_date: str,
    time_spent_minutes: int | None = None,
    comment: str | None = None,
    now: datetime | None = None,
    notifier: RefreshNotifier | None = None,
) -> CompletionOutcome:
    """Record that member did task on selected_date.

    A child's completion in a family that requires verification is stored as
    pending and earns nothing until approved. Any other completion is approved
    immediately: the task points go to the ledger as an earned entry, any
    overtime bonus as a separate bonus entry, and the balance is credited.

    If the ledger or balance step fails, the completion and the assignment
    change are rolled back before the error propagates.

    Raises:
        db_client.RecordNotFoundError: If the task or member is not found
        PermissionDeniedError: If the task belongs to another family
        InvalidInputError: Bad date, negative time spent, or an inactive task
        StorageFailureError: If a write fails
    """
    with span("completion_service.record_completion"):
        completed_on = parse_calendar_date(selected_date).isoformat()
        completed_at = resolve_completion_timestamp(selected_date, now)
        if time_spent_minutes is not None and time_spent_minutes < 0:
            msg = f"Time spent cannot be negative, got {time_spent_minutes}"
            raise InvalidInputError(msg)

        member = await member_service.get_member(member_id=member_id)
        task = await task_service.get_task(task_id=task_id)
        member_service.require_same_family(member, task.family_id)
        member_service.require_permission(member, Permission.COMPLETE_OWN_TASKS)
        if not task.is_active:
            msg = f"Task '{task.title}' is no longer active"
            raise InvalidInputError(msg)

        family = await member_service.get_family(family_id=task.family_id)
        status = initial_verification_status(family=family, member=member)
        bonus = calculate_bonus_points(time_spent_minutes, task.estimated_minutes)

        assignment, assignment_created = await assignment_service.assignment_for_completion(
            task_id=task_id,
            member_id=member_id,
            completed_on=completed_on,
        )

        data: dict[str, Any] = {
            "task_id": task_id,
            "assignment_id": assignment["id"],
            "completed_by": member_id,
            "completed_at": completed_at,
            "base_points": task.points,
            "bonus_points": bonus.bonus_points,
            "points_awarded": task.points + bonus.bonus_points,
            "verification_status": status,
        }
        if comment:
            data["comment"] = comment
        if time_spent_minutes is not None:
            data["time_spent_minutes"] = time_spent_minutes

        try:
            completion = await db_client.create_record(collection=COLLECTION, data=data)
        except AccountingError:
            await _rollback(assignment_id=assignment["id"], assignment_created=assignment_created)
            raise

        if status == VerificationStatus.PENDING:
            logger.info("Completion %s of task %s by %s awaits verification", completion["id"], task_id, member_id)
            await notify_refresh(notifier, task.family_id, RefreshReason.TASK_COMPLETED)
            return CompletionOutcome(completion=completion_from_record(completion), transactions=[])

        entries = ledger_service.completion_entries(completion=completion, task_title=task.title)
        try:
            transactions, new_balance = await balance_service.credit_completion(
                completion=completion,
                entries=entries,
            )
        except PartialWriteError:
            # Ledger entries are still tagged with the completion; keep it so undo can clean up
            raise
        except AccountingError:
            await _rollback(
                assignment_id=assignment["id"],
                assignment_created=assignment_created,
                completion_id=completion["id"],
            )
            raise

        logger.info(
            "Member %s completed task %s on %s: %d points (%d bonus), balance %d",
            member_id,
            task_id,
            completed_on,
            task.points,
            bonus.bonus_points,
            new_balance,
        )
        await notify_refresh(notifier, task.family_id, RefreshReason.TASK_COMPLETED)
        return CompletionOutcome(
            completion=completion_from_record(completion),
            transactions=transactions_from_records(transactions),
            new_balance=new_balance,
        )


async def complete_task(
    *,
    task_id: str,
    member_id: str,
    selected_date: str,
    time_spent_minutes: int | None = None,
    comment: str | None = None,
    now: datetime | None = None,
    notifier: RefreshNotifier | None = None,
) -> OperationResult[CompletionOutcome]:
    """Complete a task, reporting failures as a result instead of raising."""
    try:
        outcome = await record_completion(
            task_id=task_id,
            member_id=member_id,
            selected_date=selected_date,
            time_spent_minutes=time_spent_minutes,
            comment=comment,
            now=now,
            notifier=notifier,
        )
    except AccountingError as e:
        logger.warning("Completing task %s for member %s failed: %s", task_id, member_id, e)
        return OperationResult.failure(e)
    return OperationResult.success(outcome)


async def remove_completion(
    *,
    completion_id: str,
    actor_id: str | None = None,
    notifier: RefreshNotifier | None = None,
) -> UndoOutcome:
    """Undo a completion and take back exactly the points its ledger entries gave.

    Members can undo their own completions; admins can undo anyone's in their
    family.

    Raises:
        db_client.RecordNotFoundError: If the completion is not found
        PermissionDeniedError: If the actor may not undo this completion
        StorageFailureError: If a write fails
    """
    with span("completion_service.remove_completion"):
        completion = await db_client.get_record(collection=COLLECTION, record_id=completion_id)
        completer = await member_service.get_member(member_id=completion["completed_by"])

        if actor_id and actor_id != completer.id:
            actor = await member_service.get_member(member_id=actor_id)
            member_service.require_same_family(actor, completer.family_id)
            member_service.require_permission(actor, Permission.MANAGE_FAMILY)

        outcome = await balance_service.undo_completion(completion=completion)
        await notify_refresh(notifier, completer.family_id, RefreshReason.COMPLETION_UNDONE)
        return outcome


async def undo_task_completion(
    *,
    completion_id: str,
    actor_id: str | None = None,
    notifier: RefreshNotifier | None = None,
) -> OperationResult[UndoOutcome]:
    """Undo a completion, reporting failures as a result instead of raising."""
    try:
        outcome = await remove_completion(completion_id=completion_id, actor_id=actor_id, notifier=notifier)
    except AccountingError as e:
        logger.warning("Undoing completion %s failed: %s", completion_id, e)
        return OperationResult.failure(e)
    return OperationResult.success(outcome)
