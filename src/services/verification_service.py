"""Verification service for children's pending task completions."""

import logging
from datetime import datetime
from enum import StrEnum
from typing import Any

from src.core import db_client
from src.core.errors import AccountingError, PartialWriteError
from src.core.events import RefreshNotifier, RefreshReason, notify_refresh
from src.core.logging import span
from src.core.member_lock import completion_lock
from src.domain.completion import TaskCompletion, VerificationStatus, approve, reject
from src.models.service_models import (
    OperationResult,
    VerificationOutcome,
    completion_from_record,
    transactions_from_records,
)
from src.services import balance_service, ledger_service, member_service, task_service
from src.services.member_service import Permission


logger = logging.getLogger(__name__)

COLLECTION = "task_completions"


class VerificationDecision(StrEnum):
    """Verification decision enum."""

    APPROVE = "APPROVE"
    REJECT = "REJECT"


async def _task_title(task_id: str) -> str:
    try:
        task = await task_service.get_task(task_id=task_id)
    except db_client.RecordNotFoundError:
        return "deleted task"
    return task.title


async def review_completion(
    *,
    completion_id: str,
    verifier_id: str,
    decision: VerificationDecision,
    notifier: RefreshNotifier | None = None,
) -> VerificationOutcome:
    """Approve or reject a pending completion.

    On APPROVE the completion's base and bonus points are written to the ledger
    and the completer's balance. On REJECT nothing is credited. If crediting
    fails, the completion goes back to pending.

    Raises:
        db_client.RecordNotFoundError: If the completion or a member is not found
        PermissionDeniedError: If the verifier may not review completions
        InvalidStateTransitionError: If the completion is not pending
        StorageFailureError: If a write fails
    """
    with span("verification_service.review_completion"):
        # Reviews and undos of one completion queue up so it is credited at most once
        async with completion_lock(completion_id):
            completion = await db_client.get_record(collection=COLLECTION, record_id=completion_id)
            current = TaskCompletion.model_validate(completion).verification_status

            verifier = await member_service.get_member(member_id=verifier_id)
            completer = await member_service.get_member(member_id=completion["completed_by"])
            member_service.require_same_family(verifier, completer.family_id)
            member_service.require_permission(verifier, Permission.MANAGE_FAMILY, Permission.VIEW_ALL_STATS)

            target = approve(current) if decision == VerificationDecision.APPROVE else reject(current)

            updated = await db_client.update_record(
                collection=COLLECTION,
                record_id=completion_id,
                data={
                    "verification_status": target,
                    "verified_by": verifier_id,
                    "verified_at": datetime.now().astimezone().isoformat(),
                },
            )

            if target == VerificationStatus.REJECTED:
                logger.info("Member %s rejected completion %s", verifier_id, completion_id)
                await notify_refresh(notifier, completer.family_id, RefreshReason.COMPLETION_VERIFIED)
                return VerificationOutcome(completion=completion_from_record(updated), transactions=[])

            entries = ledger_service.completion_entries(
                completion=updated,
                task_title=await _task_title(updated["task_id"]),
            )
            try:
                transactions, new_balance = await balance_service.credit_completion(
                    completion=updated,
                    entries=entries,
                )
            except AccountingError:
                logger.warning("Crediting completion %s failed, returning it to pending", completion_id)
                try:
                    await db_client.update_record(
                        collection=COLLECTION,
                        record_id=completion_id,
                        data={"verification_status": VerificationStatus.PENDING, "verified_by": "", "verified_at": ""},
                    )
                except AccountingError as e:
                    msg = f"Completion {completion_id} is approved but its points were not credited"
                    raise PartialWriteError(msg) from e
                raise

            logger.info(
                "Member %s approved completion %s: %d points credited to %s",
                verifier_id,
                completion_id,
                ledger_service.transaction_total(transactions),
                completer.id,
            )
            await notify_refresh(notifier, completer.family_id, RefreshReason.COMPLETION_VERIFIED)
            return VerificationOutcome(
                completion=completion_from_record(updated),
                transactions=transactions_from_records(transactions),
                new_balance=new_balance,
            )


async def verify_completion(
    *,
    completion_id: str,
    verifier_id: str,
    approved: bool,
    notifier: RefreshNotifier | None = None,
) -> OperationResult[VerificationOutcome]:
    """Approve or reject a pending completion, reporting failures as a result."""
    decision = VerificationDecision.APPROVE if approved else VerificationDecision.REJECT
    try:
        outcome = await review_completion(
            completion_id=completion_id,
            verifier_id=verifier_id,
            decision=decision,
            notifier=notifier,
        )
    except AccountingError as e:
        logger.warning("Verification of completion %s failed: %s", completion_id, e)
        return OperationResult.failure(e)
    return OperationResult.success(outcome)


async def get_pending_verifications(*, family_id: str, user_id: str | None = None) -> list[dict[str, Any]]:
    """Pending completions of a family's tasks, oldest first.

    Args:
        family_id: Family ID
        user_id: Optional filter to exclude completions by this member

    Returns:
        List of completion records awaiting review
    """
    with span("verification_service.get_pending_verifications"):
        tasks = await task_service.get_tasks(family_id=family_id, include_inactive=True)
        task_ids = {task.id for task in tasks}
        if not task_ids:
            return []

        pending = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=f'verification_status = "{VerificationStatus.PENDING}"',
            sort="completed_at",
        )

        return [
            completion
            for completion in pending
            if completion["task_id"] in task_ids and (not user_id or completion["completed_by"] != user_id)
        ]
