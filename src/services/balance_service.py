"""Balance accounting: keeps members.points_balance in step with the ledger.

Every read-modify-write of a balance runs under the member's lock. Undo also
holds the completion's lock, so it queues behind a review of the same
completion. Each sequence runs shielded from caller cancellation, so a
cancelled request still finishes (or compensates) its ledger and balance
writes as a unit.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine, Mapping, Sequence
from typing import Any, TypeVar

from src.core import db_client
from src.core.errors import AccountingError, InvalidInputError, PartialWriteError, StorageFailureError
from src.core.events import RefreshNotifier, RefreshReason, notify_refresh
from src.core.logging import log_with_member_context, span
from src.core.member_lock import completion_lock, member_lock
from src.domain.transaction import TransactionType
from src.models.service_models import BalanceReconciliation, UndoOutcome
from src.services import assignment_service, ledger_service, member_service
from src.services.ledger_service import transaction_total
from src.services.member_service import Permission


logger = logging.getLogger(__name__)

T = TypeVar("T")

LedgerEntry = dict[str, Any]


async def _shielded(coro: Coroutine[Any, Any, T]) -> T:
    return await asyncio.shield(asyncio.ensure_future(coro))


async def _read_balance(member_id: str) -> int:
    record = await db_client.get_record(collection="members", record_id=member_id)
    return record.get("points_balance") or 0


async def _write_balance(member_id: str, balance: int) -> None:
    await db_client.update_record(
        collection="members",
        record_id=member_id,
        data={"points_balance": balance},
    )


async def _apply_delta(member_id: str, delta: int) -> int:
    current = await _read_balance(member_id)
    new_balance = max(0, current + delta)
    await _write_balance(member_id, new_balance)
    log_with_member_context(
        logger,
        "info",
        "balance_updated",
        member_id=member_id,
        previous_balance=current,
        new_balance=new_balance,
    )
    return new_balance


async def _discard_recorded(recorded: Sequence[Mapping[str, Any]], cause: Exception) -> None:
    """Compensate ledger entries written before a failure."""
    if not recorded:
        return
    try:
        await ledger_service.delete_transactions(recorded)
    except StorageFailureError as e:
        logger.error(
            "Could not remove %d ledger entries after failure (%s)",
            len(recorded),
            cause,
        )
        msg = "Ledger entries were written but the balance update failed"
        raise PartialWriteError(msg) from e
    logger.warning("Removed %d ledger entries after failure: %s", len(recorded), cause)


async def _record_and_apply(
    *,
    member_id: str,
    entries: Sequence[LedgerEntry],
    completion: Mapping[str, Any] | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """Append entries and move the balance by their total. Caller holds the lock.

    If any insert or the balance write fails, entries already written are
    deleted again before the error propagates.
    """
    recorded: list[dict[str, Any]] = []
    completion_id = completion["id"] if completion else None
    try:
        for entry in entries:
            recorded.append(
                await ledger_service.record_transaction(
                    member_id=member_id,
                    completion_id=completion_id,
                    **entry,
                )
            )
        if completion is not None:
            new_balance = await apply_completion(completion=completion, transactions=recorded)
        else:
            new_balance = await _apply_delta(member_id, transaction_total(recorded))
    except AccountingError as e:
        await _discard_recorded(recorded, e)
        raise
    return recorded, new_balance


async def apply_completion(*, completion: Mapping[str, Any], transactions: Sequence[Mapping[str, Any]]) -> int:
    """Add the ledger entries of an approved completion to the completer's balance.

    The caller must hold the completer's member lock.

    Args:
        completion: Completion record
        transactions: Ledger entries recorded for this completion

    Returns:
        New cached balance

    Raises:
        InvalidInputError: If an entry belongs to another completion
    """
    with span("balance_service.apply_completion"):
        for tx in transactions:
            if tx.get("completion_id") != completion["id"]:
                msg = f"Transaction {tx.get('id')} does not belong to completion {completion['id']}"
                raise InvalidInputError(msg)
        return await _apply_delta(completion["completed_by"], transaction_total(transactions))


async def credit_completion(
    *,
    completion: Mapping[str, Any],
    entries: Sequence[LedgerEntry],
) -> tuple[list[dict[str, Any]], int]:
    """Record the ledger entries for an approved completion and credit the balance.

    Args:
        completion: Completion record
        entries: record_transaction keyword arguments (without member/completion id)

    Returns:
        (created transaction records, new balance)

    Raises:
        StorageFailureError: If a write fails; entries already written are removed
        PartialWriteError: If removing them failed as well
    """
    member_id = completion["completed_by"]

    async def run() -> tuple[list[dict[str, Any]], int]:
        async with member_lock(member_id):
            return await _record_and_apply(member_id=member_id, entries=entries, completion=completion)

    with span("balance_service.credit_completion"):
        return await _shielded(run())


async def undo_completion(*, completion: Mapping[str, Any]) -> UndoOutcome:
    """Reverse a completion: ledger-authoritative debit, then remove its records.

    The amount removed is the sum of the completion's ledger entries, not the
    completion's stored points. The balance is floored at zero. If the
    completion never produced entries (pending or rejected), the balance is
    left untouched.

    Args:
        completion: Completion record

    Returns:
        UndoOutcome with the points taken back and the new balance

    Raises:
        db_client.RecordNotFoundError: If the completion was already removed
        StorageFailureError: If a write fails; the balance is restored
        PartialWriteError: If restoring failed as well
    """
    member_id = completion["completed_by"]
    completion_id = completion["id"]

    async def run() -> UndoOutcome:
        async with completion_lock(completion_id), member_lock(member_id):
            # A review may have credited or an undo removed it while we waited
            current_completion = await db_client.get_record(collection="task_completions", record_id=completion_id)
            transactions = await ledger_service.transactions_for_completion(completion_id=completion_id)
            current = await _read_balance(member_id)
            removed = transaction_total(transactions)
            new_balance = current

            if transactions:
                new_balance = max(0, current - removed)
                await _write_balance(member_id, new_balance)
                await _delete_entries_or_restore(member_id, transactions, previous_balance=current)

            await db_client.delete_record(collection="task_completions", record_id=completion_id)
            if current_completion.get("assignment_id"):
                await assignment_service.release_assignment(assignment_id=current_completion["assignment_id"])
            logger.info(
                "Undid completion %s for member %s: removed %d ledger entries, balance %d -> %d",
                completion_id,
                member_id,
                len(transactions),
                current,
                new_balance,
            )
            return UndoOutcome(
                completion_id=completion_id,
                member_id=member_id,
                points_removed=removed,
                new_balance=new_balance,
            )

    with span("balance_service.undo_completion"):
        return await _shielded(run())


async def _delete_entries_or_restore(
    member_id: str,
    transactions: Sequence[Mapping[str, Any]],
    *,
    previous_balance: int,
) -> None:
    deleted: list[Mapping[str, Any]] = []
    try:
        for tx in transactions:
            await ledger_service.delete_transactions([tx])
            deleted.append(tx)
    except StorageFailureError as e:
        logger.warning("Undo failed after deleting %d of %d entries: %s", len(deleted), len(transactions), e)
        try:
            for tx in deleted:
                await ledger_service.record_transaction(
                    member_id=member_id,
                    transaction_type=tx["transaction_type"],
                    points=tx.get("points"),
                    bonus_points=tx.get("bonus_points"),
                    description=tx.get("description") or "",
                    completion_id=tx.get("completion_id"),
                )
            await _write_balance(member_id, previous_balance)
        except AccountingError as restore_error:
            msg = f"Undo of member {member_id} balance could not be rolled back"
            raise PartialWriteError(msg) from restore_error
        raise


async def reconcile_balance(*, member_id: str, repair: bool = True) -> BalanceReconciliation:
    """Compare the cached balance with max(0, ledger sum) and optionally overwrite it.

    Raises:
        db_client.RecordNotFoundError: If member not found
    """

    async def run() -> BalanceReconciliation:
        async with member_lock(member_id):
            cached = await _read_balance(member_id)
            from_ledger = await ledger_service.ledger_balance(member_id=member_id)
            in_sync = cached == from_ledger
            repaired = False
            if not in_sync:
                logger.warning(
                    "Balance drift for member %s: cached %d, ledger %d",
                    member_id,
                    cached,
                    from_ledger,
                )
                if repair:
                    await _write_balance(member_id, from_ledger)
                    repaired = True
            return BalanceReconciliation(
                member_id=member_id,
                cached_balance=cached,
                ledger_balance=from_ledger,
                in_sync=in_sync,
                repaired=repaired,
            )

    with span("balance_service.reconcile_balance"):
        return await _shielded(run())


def _require_positive(points: int) -> None:
    if points <= 0:
        msg = f"Point amount must be positive, got {points}"
        raise InvalidInputError(msg)


async def spend_points(
    *,
    member_id: str,
    points: int,
    description: str,
    notifier: RefreshNotifier | None = None,
) -> int:
    """Redeem points from a member's own balance.

    Raises:
        InvalidInputError: If points is not positive or exceeds the balance
    """
    with span("balance_service.spend_points"):
        _require_positive(points)
        member = await member_service.get_member(member_id=member_id)

        async def run() -> int:
            async with member_lock(member_id):
                current = await _read_balance(member_id)
                if points > current:
                    msg = f"{member.nickname} only has {current} points"
                    raise InvalidInputError(msg)
                _, new_balance = await _record_and_apply(
                    member_id=member_id,
                    entries=[
                        {"transaction_type": TransactionType.SPENT, "points": -points, "description": description}
                    ],
                )
                return new_balance

        new_balance = await _shielded(run())
        await notify_refresh(notifier, member.family_id, RefreshReason.POINTS_ADJUSTED)
        return new_balance


async def _admin_adjustment(
    *,
    member_id: str,
    actor_id: str,
    build_entry: Callable[[int], LedgerEntry | None],
    notifier: RefreshNotifier | None,
) -> int:
    actor = await member_service.get_member(member_id=actor_id)
    member = await member_service.get_member(member_id=member_id)
    member_service.require_same_family(actor, member.family_id)
    member_service.require_permission(actor, Permission.AWARD_BONUS_POINTS)

    async def run() -> int:
        async with member_lock(member_id):
            entry = build_entry(await _read_balance(member_id))
            if entry is None:
                return await _read_balance(member_id)
            _, new_balance = await _record_and_apply(member_id=member_id, entries=[entry])
            return new_balance

    new_balance = await _shielded(run())
    await notify_refresh(notifier, member.family_id, RefreshReason.POINTS_ADJUSTED)
    return new_balance


async def award_bonus_points(
    *,
    member_id: str,
    actor_id: str,
    points: int,
    description: str,
    notifier: RefreshNotifier | None = None,
) -> int:
    """Grant bonus points outside of a completion (admin only)."""
    with span("balance_service.award_bonus_points"):
        _require_positive(points)
        return await _admin_adjustment(
            member_id=member_id,
            actor_id=actor_id,
            build_entry=lambda _current: {
                "transaction_type": TransactionType.BONUS,
                "bonus_points": points,
                "description": description,
            },
            notifier=notifier,
        )


async def apply_penalty(
    *,
    member_id: str,
    actor_id: str,
    points: int,
    description: str,
    notifier: RefreshNotifier | None = None,
) -> int:
    """Deduct points (admin only).

    The recorded penalty is capped at the current balance so the ledger sum
    never drops below the floored cached balance.
    """
    with span("balance_service.apply_penalty"):
        _require_positive(points)

        def entry(current: int) -> LedgerEntry | None:
            amount = min(points, current)
            if amount == 0:
                return None
            return {"transaction_type": TransactionType.PENALTY, "points": -amount, "description": description}

        return await _admin_adjustment(member_id=member_id, actor_id=actor_id, build_entry=entry, notifier=notifier)


async def reset_all_points(
    *,
    family_id: str,
    actor_id: str,
    notifier: RefreshNotifier | None = None,
) -> dict[str, int]:
    """Zero every balance in a family (admin only).

    Each non-zero balance is offset by a penalty entry so ledger sums stay equal
    to the cached balances.

    Returns:
        Mapping of member id to new balance (always 0)
    """
    with span("balance_service.reset_all_points"):
        actor = await member_service.get_member(member_id=actor_id)
        member_service.require_same_family(actor, family_id)
        member_service.require_permission(actor, Permission.MANAGE_FAMILY)

        members = await member_service.get_family_members(family_id=family_id)
        balances: dict[str, int] = {}
        for member in members:

            async def run(member_id: str = member.id) -> int:
                async with member_lock(member_id):
                    current = await _read_balance(member_id)
                    if current == 0:
                        return 0
                    entry = {
                        "transaction_type": TransactionType.PENALTY,
                        "points": -current,
                        "description": "Points reset",
                    }
                    _, new_balance = await _record_and_apply(member_id=member_id, entries=[entry])
                    return new_balance

            balances[member.id] = await _shielded(run())

        logger.info("Reset points for %d members of family %s", len(balances), family_id)
        await notify_refresh(notifier, family_id, RefreshReason.POINTS_ADJUSTED)
        return balances
