"""Family and member domain models and enums."""

from enum import StrEnum

from pydantic import BaseModel, Field, field_validator

from src.core.config import settings


# Constants for validation
MAX_NICKNAME_LENGTH = 50


class MemberRole(StrEnum):
    """Member role in the family."""

    ADMIN = "admin"
    MEMBER = "member"
    CHILD = "child"


class Family(BaseModel):
    """Family data transfer object."""

    id: str = Field(..., description="Unique family ID from PocketBase")
    name: str = Field(..., description="Family display name")
    require_child_verification: bool | None = Field(
        default=None,
        description="Hold children's completions for approval; unset means required",
    )

    @property
    def requires_child_verification(self) -> bool:
        """Effective verification policy, treating an unset value as the configured default."""
        if self.require_child_verification is None:
            return settings.default_require_child_verification
        return self.require_child_verification


class Member(BaseModel):
    """Family member data transfer object."""

    id: str = Field(..., description="Unique member ID from PocketBase")
    family_id: str = Field(..., description="Family this member belongs to")
    nickname: str = Field(..., description="Display name of the member")
    role: MemberRole = Field(default=MemberRole.MEMBER, description="Member role in the family")
    points_balance: int = Field(default=0, ge=0, description="Cached running point total")

    @field_validator("points_balance", mode="before")
    @classmethod
    def coalesce_balance(cls, v: int | None) -> int:
        """Treat a missing balance as zero."""
        return v or 0

    @field_validator("nickname")
    @classmethod
    def validate_nickname_usable(cls, v: str) -> str:
        """Validate nickname is non-empty and not too long."""
        v = v.strip()

        if not v:
            raise ValueError("Nickname cannot be empty")

        if len(v) > MAX_NICKNAME_LENGTH:
            raise ValueError(f"Nickname too long (max {MAX_NICKNAME_LENGTH} characters)")

        return v
