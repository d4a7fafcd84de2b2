"""Pydantic models for service layer return types.

These models provide type safety at service boundaries, converting database
dictionaries into typed objects with validation.
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from src.core.errors import ErrorResponse, classify_error_with_response
from src.domain.completion import TaskCompletion, VerificationStatus
from src.domain.task import Task
from src.domain.transaction import PointsTransaction


T = TypeVar("T")


class OperationResult(BaseModel, Generic[T]):
    """Success payload or error, never both."""

    ok: bool
    data: T | None = None
    error: ErrorResponse | None = None

    @classmethod
    def success(cls, data: T) -> "OperationResult[T]":
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, exception: Exception) -> "OperationResult[T]":
        return cls(ok=False, error=classify_error_with_response(exception))


class DueTask(BaseModel):
    """A task due on a given day together with its position in the input list."""

    task: Task
    original_index: int


class BonusPoints(BaseModel):
    """Overtime bonus for a completion."""

    bonus_points: int
    overtime_minutes: int
    explanation: str | None = None


class CompletionOutcome(BaseModel):
    """Result of completing a task.

    For a pending completion, transactions is empty and new_balance is None.
    """

    completion: TaskCompletion
    transactions: list[PointsTransaction]
    new_balance: int | None = None

    @property
    def is_pending(self) -> bool:
        return self.completion.verification_status == VerificationStatus.PENDING


class UndoOutcome(BaseModel):
    """Result of undoing a completion."""

    completion_id: str
    member_id: str
    points_removed: int
    new_balance: int


class VerificationOutcome(BaseModel):
    """Result of approving or rejecting a pending completion."""

    completion: TaskCompletion
    transactions: list[PointsTransaction]
    new_balance: int | None = None


class BalanceReconciliation(BaseModel):
    """Comparison of a cached balance with the ledger sum."""

    member_id: str
    cached_balance: int
    ledger_balance: int
    in_sync: bool
    repaired: bool


class LeaderboardEntry(BaseModel):
    """Member entry in the family points leaderboard."""

    member_id: str
    nickname: str
    points_balance: int
    rank: int


class MemberStatistics(BaseModel):
    """Completion and points statistics for a member over a period."""

    member_id: str
    nickname: str
    approved_completions: int
    pending_completions: int
    rejected_completions: int
    points_earned: int
    bonus_points_earned: int
    period_days: int


def completion_from_record(record: dict[str, Any]) -> TaskCompletion:
    """Validate a completion record from the database."""
    return TaskCompletion.model_validate(record)


def transactions_from_records(records: list[dict[str, Any]]) -> list[PointsTransaction]:
    """Validate transaction records from the database."""
    return [PointsTransaction.model_validate(record) for record in records]
