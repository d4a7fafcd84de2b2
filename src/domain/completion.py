"""Task completion domain model and the verification state machine."""

from enum import StrEnum

from pydantic import BaseModel, Field

from src.core.errors import InvalidStateTransitionError
from src.domain.member import Family, Member, MemberRole


class VerificationStatus(StrEnum):
    """Verification state of a completion.

    APPROVED and REJECTED are terminal. Only APPROVED completions affect points.
    """

    APPROVED = "approved"
    PENDING = "pending"
    REJECTED = "rejected"


# Allowed verification transitions
VERIFICATION_TRANSITIONS: dict[VerificationStatus, frozenset[VerificationStatus]] = {
    VerificationStatus.PENDING: frozenset({VerificationStatus.APPROVED, VerificationStatus.REJECTED}),
    VerificationStatus.APPROVED: frozenset(),
    VerificationStatus.REJECTED: frozenset(),
}


def can_transition(current: VerificationStatus, target: VerificationStatus) -> bool:
    """Return True if the state machine allows current -> target."""
    return target in VERIFICATION_TRANSITIONS[current]


def _transition(current: VerificationStatus, target: VerificationStatus) -> VerificationStatus:
    if not can_transition(current, target):
        msg = f"Cannot move completion from {current} to {target}"
        raise InvalidStateTransitionError(msg)
    return target


def approve(current: VerificationStatus) -> VerificationStatus:
    """pending -> approved."""
    return _transition(current, VerificationStatus.APPROVED)


def reject(current: VerificationStatus) -> VerificationStatus:
    """pending -> rejected."""
    return _transition(current, VerificationStatus.REJECTED)


def initial_verification_status(*, family: Family, member: Member) -> VerificationStatus:
    """Status a new completion starts in.

    A child's completion is held as pending when the family requires child
    verification (an unset setting counts as required). Everything else is
    approved immediately.
    """
    if member.role == MemberRole.CHILD and family.requires_child_verification:
        return VerificationStatus.PENDING
    return VerificationStatus.APPROVED


class TaskCompletion(BaseModel):
    """Task completion data transfer object."""

    id: str = Field(..., description="Unique completion ID")
    task_id: str = Field(..., description="Completed task ID")
    assignment_id: str | None = Field(default=None, description="Assignment this completion fulfils")
    completed_by: str = Field(..., description="Member who completed the task")
    completed_at: str = Field(..., description="Completion timestamp (ISO date-time)")
    base_points: int = Field(default=0, ge=0, description="Task points at completion time")
    bonus_points: int = Field(default=0, ge=0, description="Overtime bonus at completion time")
    points_awarded: int = Field(
        default=0,
        description="Display-only total; never used for balance arithmetic",
    )
    comment: str | None = Field(default=None, description="Free-text comment")
    time_spent_minutes: int | None = Field(default=None, description="Reported time spent")
    verification_status: VerificationStatus = Field(
        default=VerificationStatus.APPROVED,
        description="Verification state",
    )
    verified_by: str | None = Field(default=None, description="Member who approved or rejected")
    verified_at: str | None = Field(default=None, description="When the completion was reviewed (ISO)")
