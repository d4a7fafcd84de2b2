"""Domain models and DTOs."""

from src.domain.completion import TaskCompletion, VerificationStatus
from src.domain.create_models import FamilyCreate, MemberCreate, TaskCreate, TaskUpdate
from src.domain.member import Family, Member, MemberRole
from src.domain.task import Task, TaskAssignment
from src.domain.transaction import PointsTransaction, TransactionCreate, TransactionType


__all__ = [
    "Family",
    "FamilyCreate",
    "Member",
    "MemberCreate",
    "MemberRole",
    "PointsTransaction",
    "Task",
    "TaskAssignment",
    "TaskCompletion",
    "TaskCreate",
    "TaskUpdate",
    "TransactionCreate",
    "TransactionType",
    "VerificationStatus",
]
