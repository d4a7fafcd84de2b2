"""Task and assignment domain models."""

from pydantic import BaseModel, Field, field_validator

from src.core.config import constants


class Task(BaseModel):
    """Task data transfer object."""

    id: str = Field(..., description="Unique task ID from database")
    family_id: str = Field(..., description="Owning family ID")
    title: str = Field(..., description="Task title")
    description: str | None = Field(default=None, description="Detailed task description")
    points: int = Field(default=0, ge=0, description="Base points awarded on completion")
    estimated_minutes: int | None = Field(default=None, gt=0, description="Estimated duration in minutes")
    recurring_days: list[bool] | None = Field(
        default=None,
        description="Weekly due mask indexed Monday=0..Sunday=6; None means due every day",
    )
    is_active: bool = Field(default=True, description="Soft-disable flag")
    created_by: str | None = Field(default=None, description="Member who created the task")

    @field_validator("points", mode="before")
    @classmethod
    def coalesce_points(cls, v: int | None) -> int:
        return v or 0

    @field_validator("estimated_minutes", mode="before")
    @classmethod
    def empty_estimate_is_none(cls, v: int | None) -> int | None:
        """PocketBase stores an unset number as 0."""
        return v or None

    @field_validator("recurring_days", mode="before")
    @classmethod
    def validate_recurring_days(cls, v: list | None) -> list | None:
        """Require exactly one entry per weekday; an empty mask means no mask."""
        if not v:
            return None
        if len(v) != constants.DAYS_PER_WEEK:
            msg = f"Recurrence mask must have {constants.DAYS_PER_WEEK} entries (Monday..Sunday), got {len(v)}"
            raise ValueError(msg)
        return [bool(day) for day in v]


class TaskAssignment(BaseModel):
    """Assignment of a task to a date and optionally a member."""

    id: str = Field(..., description="Unique assignment ID")
    task_id: str = Field(..., description="Assigned task ID")
    assigned_to: str | None = Field(default=None, description="Assignee member ID")
    assigned_by: str | None = Field(default=None, description="Member who made the assignment")
    due_date: str = Field(..., description="Due date (ISO calendar date)")
    completed: bool = Field(default=False, description="Whether the assignment has been completed")
    auto_created: bool = Field(
        default=False,
        description="Created implicitly when a completion had no pre-existing assignment",
    )
