"""Points transaction domain models."""

from enum import StrEnum

from pydantic import BaseModel, Field, model_validator


class TransactionType(StrEnum):
    """Kind of point-affecting event."""

    EARNED = "earned"
    SPENT = "spent"
    BONUS = "bonus"
    PENALTY = "penalty"


CREDIT_TYPES = frozenset({TransactionType.EARNED, TransactionType.BONUS})
DEBIT_TYPES = frozenset({TransactionType.SPENT, TransactionType.PENALTY})


class PointsTransaction(BaseModel):
    """Ledger entry data transfer object. Never mutated after creation."""

    id: str = Field(..., description="Unique transaction ID")
    member_id: str = Field(..., description="Member whose balance this affects")
    points: int | None = Field(default=0, description="Base point amount")
    bonus_points: int | None = Field(default=0, description="Bonus point amount")
    transaction_type: TransactionType = Field(..., description="earned, spent, bonus or penalty")
    description: str = Field(default="", description="Human-readable description")
    completion_id: str | None = Field(default=None, description="Originating completion, if any")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")

    @property
    def total(self) -> int:
        return (self.points or 0) + (self.bonus_points or 0)


class TransactionCreate(BaseModel):
    """Payload for recording a ledger entry.

    Credits (earned, bonus) carry non-negative amounts and debits (spent,
    penalty) carry non-positive amounts.
    """

    member_id: str = Field(..., min_length=1)
    points: int = Field(default=0)
    bonus_points: int = Field(default=0)
    transaction_type: TransactionType
    description: str = Field(default="")
    completion_id: str | None = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def coalesce_amounts(cls, data: dict) -> dict:
        if isinstance(data, dict):
            data = {**data, "points": data.get("points") or 0, "bonus_points": data.get("bonus_points") or 0}
        return data

    @model_validator(mode="after")
    def validate_sign(self) -> "TransactionCreate":
        if self.transaction_type in CREDIT_TYPES and (self.points < 0 or self.bonus_points < 0):
            msg = f"{self.transaction_type} transactions cannot carry negative amounts"
            raise ValueError(msg)
        if self.transaction_type in DEBIT_TYPES and (self.points > 0 or self.bonus_points > 0):
            msg = f"{self.transaction_type} transactions cannot carry positive amounts"
            raise ValueError(msg)
        return self

    @property
    def total(self) -> int:
        return self.points + self.bonus_points
