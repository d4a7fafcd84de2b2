"""HTTP API for task completion and points accounting."""

import logging
from typing import Annotated, Any, TypeVar

from fastapi import APIRouter, Depends, Header, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.core import db_client
from src.core.config import constants
from src.core.errors import AccountingError, ErrorKind, ErrorResponse, classify_error_with_response
from src.core.events import RefreshNotifier
from src.domain.member import Member
from src.domain.transaction import PointsTransaction, TransactionType
from src.models.service_models import (
    BalanceReconciliation,
    CompletionOutcome,
    DueTask,
    LeaderboardEntry,
    MemberStatistics,
    OperationResult,
    UndoOutcome,
    VerificationOutcome,
    transactions_from_records,
)
from src.services import (
    balance_service,
    completion_service,
    ledger_service,
    member_service,
    stats_service,
    task_service,
    verification_service,
)
from src.services.member_service import Permission


logger = logging.getLogger(__name__)

router = APIRouter(tags=["accounting"])

refresh_notifier = RefreshNotifier()

T = TypeVar("T")

_STATUS_BY_KIND = {
    ErrorKind.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_INPUT: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.INVALID_STATE_TRANSITION: status.HTTP_409_CONFLICT,
    ErrorKind.STORAGE_FAILURE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


class CompleteTaskRequest(BaseModel):
    """Body of POST /tasks/{task_id}/complete."""

    date: str = Field(..., description="Calendar date the task was done (YYYY-MM-DD)")
    time_spent_minutes: int | None = Field(default=None, ge=0)
    comment: str | None = Field(default=None, max_length=500)


class VerifyCompletionRequest(BaseModel):
    """Body of POST /completions/{completion_id}/verify."""

    approved: bool


def _http_error(error: ErrorResponse) -> HTTPException:
    return HTTPException(status_code=_STATUS_BY_KIND[error.kind], detail=error.model_dump(mode="json"))


def _unwrap(result: OperationResult[T]) -> T:
    if result.error is not None:
        raise _http_error(result.error)
    return result.data  # type: ignore[return-value]


def _raise_for(exc: AccountingError) -> HTTPException:
    logger.warning("api_request_failed", extra={"kind": str(exc.kind), "error": str(exc)})
    return _http_error(classify_error_with_response(exc))


async def current_member(
    x_member_id: Annotated[str | None, Header(alias=constants.MEMBER_HEADER)] = None,
) -> Member:
    """Resolve the acting member from the request header."""
    if not x_member_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing member header")
    try:
        return await member_service.get_member(member_id=x_member_id)
    except db_client.RecordNotFoundError as err:
        logger.warning("api_unknown_member", extra={"member_id": x_member_id})
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unknown member") from err
    except AccountingError as e:
        raise _raise_for(e) from e


def get_notifier() -> RefreshNotifier:
    return refresh_notifier


CurrentMember = Annotated[Member, Depends(current_member)]
Notifier = Annotated[RefreshNotifier, Depends(get_notifier)]


def _require_view_member(member: Member, target: Member) -> None:
    member_service.require_same_family(member, target.family_id)
    if target.id != member.id:
        member_service.require_permission(member, Permission.VIEW_ALL_STATS)


@router.get("/families/{family_id}/tasks/due")
async def get_tasks_due(
    family_id: str,
    member: CurrentMember,
    date: Annotated[str, Query(description="Calendar date (YYYY-MM-DD)")],
) -> list[DueTask]:
    """Active tasks due on a date."""
    try:
        member_service.require_same_family(member, family_id)
    except AccountingError as e:
        raise _raise_for(e) from e
    return _unwrap(await task_service.tasks_due_on(family_id=family_id, date_str=date))


@router.post("/tasks/{task_id}/complete", status_code=status.HTTP_201_CREATED)
async def post_complete_task(
    task_id: str,
    body: CompleteTaskRequest,
    member: CurrentMember,
    notifier: Notifier,
) -> CompletionOutcome:
    """Complete a task as the current member."""
    result = await completion_service.complete_task(
        task_id=task_id,
        member_id=member.id,
        selected_date=body.date,
        time_spent_minutes=body.time_spent_minutes,
        comment=body.comment,
        notifier=notifier,
    )
    return _unwrap(result)


@router.delete("/completions/{completion_id}")
async def delete_completion(completion_id: str, member: CurrentMember, notifier: Notifier) -> UndoOutcome:
    """Undo a completion and take back its points."""
    result = await completion_service.undo_task_completion(
        completion_id=completion_id,
        actor_id=member.id,
        notifier=notifier,
    )
    return _unwrap(result)


@router.post("/completions/{completion_id}/verify")
async def post_verify_completion(
    completion_id: str,
    body: VerifyCompletionRequest,
    member: CurrentMember,
    notifier: Notifier,
) -> VerificationOutcome:
    """Approve or reject a pending completion."""
    result = await verification_service.verify_completion(
        completion_id=completion_id,
        verifier_id=member.id,
        approved=body.approved,
        notifier=notifier,
    )
    return _unwrap(result)


@router.get("/families/{family_id}/verifications/pending")
async def get_pending_verifications(family_id: str, member: CurrentMember) -> list[dict[str, Any]]:
    """Completions awaiting review in a family."""
    try:
        member_service.require_same_family(member, family_id)
        member_service.require_permission(member, Permission.MANAGE_FAMILY, Permission.VIEW_ALL_STATS)
        return await verification_service.get_pending_verifications(family_id=family_id)
    except AccountingError as e:
        raise _raise_for(e) from e


@router.get("/members/{member_id}/transactions")
async def get_member_transactions(
    member_id: str,
    member: CurrentMember,
    transaction_type: Annotated[TransactionType | None, Query(alias="type")] = None,
    bonus_only: bool = False,
) -> list[PointsTransaction]:
    """A member's points history, newest first."""
    try:
        target = await member_service.get_member(member_id=member_id)
        _require_view_member(member, target)
        records = await ledger_service.transactions_for_member(
            member_id=member_id,
            transaction_type=transaction_type,
            bonus_only=bonus_only,
        )
    except AccountingError as e:
        raise _raise_for(e) from e
    return transactions_from_records(records)


@router.post("/members/{member_id}/reconcile")
async def post_reconcile_balance(member_id: str, member: CurrentMember) -> BalanceReconciliation:
    """Recompute a member's balance from the ledger and repair drift (admin only)."""
    try:
        target = await member_service.get_member(member_id=member_id)
        member_service.require_same_family(member, target.family_id)
        member_service.require_permission(member, Permission.MANAGE_FAMILY)
        return await balance_service.reconcile_balance(member_id=member_id)
    except AccountingError as e:
        raise _raise_for(e) from e


@router.get("/families/{family_id}/leaderboard")
async def get_leaderboard(family_id: str, member: CurrentMember) -> list[LeaderboardEntry]:
    """Family members ranked by points."""
    try:
        member_service.require_same_family(member, family_id)
        return await stats_service.get_points_leaderboard(family_id=family_id)
    except AccountingError as e:
        raise _raise_for(e) from e


@router.get("/members/{member_id}/stats")
async def get_member_stats(
    member_id: str,
    member: CurrentMember,
    period_days: Annotated[int, Query(gt=0, le=365)] = constants.DEFAULT_STATS_PERIOD_DAYS,
) -> MemberStatistics:
    """Completion and points statistics for a member."""
    try:
        target = await member_service.get_member(member_id=member_id)
        _require_view_member(member, target)
        return await stats_service.get_member_statistics(member_id=member_id, period_days=period_days)
    except AccountingError as e:
        raise _raise_for(e) from e
