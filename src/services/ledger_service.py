"""Append-only points transaction ledger."""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import ValidationError

from src.core import db_client
from src.core.config import constants
from src.core.errors import InvalidInputError
from src.core.logging import span
from src.domain.transaction import TransactionCreate, TransactionType


logger = logging.getLogger(__name__)

COLLECTION = "points_transactions"


def transaction_amount(transaction: Mapping[str, Any]) -> int:
    """points + bonus_points of one entry, treating None or a missing key as 0."""
    return (transaction.get("points") or 0) + (transaction.get("bonus_points") or 0)


def transaction_total(transactions: Iterable[Mapping[str, Any]]) -> int:
    """Sum of points + bonus_points over entries, treating None or missing as 0."""
    return sum(transaction_amount(tx) for tx in transactions)


async def record_transaction(
    *,
    member_id: str,
    transaction_type: TransactionType | str,
    points: int | None = 0,
    bonus_points: int | None = 0,
    description: str = "",
    completion_id: str | None = None,
) -> dict[str, Any]:
    """Append a ledger entry for a member.

    Args:
        member_id: Member whose balance the entry affects
        transaction_type: earned, spent, bonus or penalty
        points: Base amount (None means 0)
        bonus_points: Bonus amount (None means 0)
        description: Human-readable description
        completion_id: Originating completion, if any

    Returns:
        Created transaction record

    Raises:
        InvalidInputError: Unknown transaction type or an amount with the wrong sign
        db_client.DatabaseError: If the insert fails
    """
    with span("ledger_service.record_transaction"):
        try:
            payload = TransactionCreate(
                member_id=member_id,
                points=points,
                bonus_points=bonus_points,
                transaction_type=transaction_type,
                description=description,
                completion_id=completion_id,
            )
        except ValidationError as e:
            msg = f"Invalid transaction for member {member_id}: {e.errors()[0]['msg']}"
            raise InvalidInputError(msg) from e

        # Relations can't be empty string, so only set completion_id when present
        data = payload.model_dump(exclude_none=True, mode="json")

        record = await db_client.create_record(collection=COLLECTION, data=data)
        logger.info(
            "Recorded %s transaction for member %s: %d + %d",
            payload.transaction_type,
            member_id,
            payload.points,
            payload.bonus_points,
        )
        return record


async def transactions_for_completion(*, completion_id: str) -> list[dict[str, Any]]:
    """All ledger entries tagged with a completion id."""
    with span("ledger_service.transactions_for_completion"):
        return await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=f'completion_id = "{db_client.sanitize_param(completion_id)}"',
            per_page=constants.LEDGER_PAGE_SIZE,
        )


async def transactions_for_member(
    *,
    member_id: str,
    transaction_type: TransactionType | None = None,
    bonus_only: bool = False,
) -> list[dict[str, Any]]:
    """A member's ledger entries, newest first.

    Args:
        member_id: Member ID
        transaction_type: Only entries of this type
        bonus_only: Only entries carrying bonus_points > 0, whatever their type

    Returns:
        List of transaction records
    """
    with span("ledger_service.transactions_for_member"):
        filters = [f'member_id = "{db_client.sanitize_param(member_id)}"']
        if transaction_type:
            filters.append(f'transaction_type = "{db_client.sanitize_param(transaction_type)}"')

        records = await db_client.list_all_records(
            collection=COLLECTION,
            filter_query=" && ".join(filters),
            sort="-created",
            per_page=constants.LEDGER_PAGE_SIZE,
        )

        if bonus_only:
            records = [tx for tx in records if (tx.get("bonus_points") or 0) > 0]

        return records


async def ledger_balance(*, member_id: str) -> int:
    """Balance derived from the ledger alone, floored at zero."""
    transactions = await transactions_for_member(member_id=member_id)
    return max(0, transaction_total(transactions))


async def delete_transactions(transactions: Iterable[Mapping[str, Any]]) -> None:
    """Delete ledger entries (undo and compensation only)."""
    with span("ledger_service.delete_transactions"):
        for tx in transactions:
            try:
                await db_client.delete_record(collection=COLLECTION, record_id=tx["id"])
            except db_client.RecordNotFoundError:
                logger.warning("Transaction %s already deleted", tx["id"])


def completion_entries(*, completion: Mapping[str, Any], task_title: str) -> list[dict[str, Any]]:
    """Ledger entries for an approved completion.

    Base points go in an earned entry and the overtime bonus in a separate
    bonus entry. Zero-amount entries are left out.
    """
    entries: list[dict[str, Any]] = []
    base = completion.get("base_points") or 0
    bonus = completion.get("bonus_points") or 0
    if base > 0:
        entries.append(
            {
                "transaction_type": TransactionType.EARNED,
                "points": base,
                "description": f"Completed: {task_title}",
            }
        )
    if bonus > 0:
        entries.append(
            {
                "transaction_type": TransactionType.BONUS,
                "bonus_points": bonus,
                "description": f"Overtime bonus: {task_title}",
            }
        )
    return entries
