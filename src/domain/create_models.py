"""Pydantic models for creating and updating records in database."""

from pydantic import BaseModel, Field, field_validator

from src.core.config import constants
from src.domain.member import MemberRole


def _validate_mask(v: list | None) -> list[bool] | None:
    if not v:
        return None
    if len(v) != constants.DAYS_PER_WEEK:
        msg = f"Recurrence mask must have {constants.DAYS_PER_WEEK} entries (Monday..Sunday), got {len(v)}"
        raise ValueError(msg)
    return [bool(day) for day in v]


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record."""

    title: str = Field(..., min_length=1, description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    points: int = Field(default=0, ge=0, description="Base points awarded on completion")
    estimated_minutes: int | None = Field(default=None, gt=0, description="Estimated duration in minutes")
    recurring_days: list[bool] | None = Field(default=None, description="Weekly due mask, Monday=0")
    is_active: bool = Field(default=True)

    @field_validator("recurring_days", mode="before")
    @classmethod
    def validate_recurring_days(cls, v: list | None) -> list[bool] | None:
        """Validate the mask has exactly seven entries."""
        return _validate_mask(v)


class TaskUpdate(BaseModel):
    """Partial update for a task; unset fields are left unchanged."""

    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    points: int | None = Field(default=None, ge=0)
    estimated_minutes: int | None = Field(default=None, gt=0)
    recurring_days: list[bool] | None = None
    is_active: bool | None = None

    @field_validator("recurring_days", mode="before")
    @classmethod
    def validate_recurring_days(cls, v: list | None) -> list[bool] | None:
        """Validate the mask has exactly seven entries."""
        return _validate_mask(v)


class FamilyCreate(BaseModel):
    """Pydantic model for creating a family record."""

    name: str = Field(..., min_length=1, description="Family name")
    require_child_verification: bool = Field(default=True, description="Hold children's completions for approval")


class MemberCreate(BaseModel):
    """Pydantic model for creating a member record."""

    family_id: str = Field(..., description="Family the member joins")
    nickname: str = Field(..., min_length=1, max_length=50, description="Display name")
    role: MemberRole = Field(default=MemberRole.MEMBER, description="Member role")
    points_balance: int = Field(default=0, ge=0, description="Starting balance")
