"""Points leaderboard and per-member completion statistics.

Key Concepts:
- Leaderboard: family members ranked by cached points balance. Equal balances
  share a rank.
- Statistics: completions by verification status and points credited by the
  ledger within the last N days (by calendar date).
"""

import logging
from datetime import date, timedelta

from src.core import db_client
from src.core.config import constants
from src.core.logging import span
from src.domain.completion import VerificationStatus
from src.domain.transaction import CREDIT_TYPES
from src.models.service_models import LeaderboardEntry, MemberStatistics
from src.services import ledger_service, member_service
from src.services.recurrence import parse_calendar_date


logger = logging.getLogger(__name__)


async def get_points_leaderboard(*, family_id: str) -> list[LeaderboardEntry]:
    """Family members sorted by points balance, highest first."""
    with span("stats_service.get_points_leaderboard"):
        members = await member_service.get_family_members(family_id=family_id)
        members.sort(key=lambda m: (-m.points_balance, m.nickname.lower()))

        leaderboard: list[LeaderboardEntry] = []
        for position, member in enumerate(members, start=1):
            rank = position
            if leaderboard and leaderboard[-1].points_balance == member.points_balance:
                rank = leaderboard[-1].rank
            leaderboard.append(
                LeaderboardEntry(
                    member_id=member.id,
                    nickname=member.nickname,
                    points_balance=member.points_balance,
                    rank=rank,
                )
            )

        logger.info("Generated points leaderboard for family %s: %d members", family_id, len(leaderboard))
        return leaderboard


def _within_period(timestamp: str | None, cutoff: date) -> bool:
    if not timestamp:
        return False
    return parse_calendar_date(timestamp) >= cutoff


async def get_member_statistics(
    *,
    member_id: str,
    period_days: int = constants.DEFAULT_STATS_PERIOD_DAYS,
    today: date | None = None,
) -> MemberStatistics:
    """Completion counts and points earned by a member over the last period_days.

    Args:
        member_id: Member ID
        period_days: Number of days to look back, including today
        today: Reference day (defaults to the local date)

    Returns:
        MemberStatistics for the period
    """
    with span("stats_service.get_member_statistics"):
        member = await member_service.get_member(member_id=member_id)
        cutoff = (today or date.today()) - timedelta(days=period_days - 1)

        completions = await db_client.list_all_records(
            collection="task_completions",
            filter_query=f'completed_by = "{db_client.sanitize_param(member_id)}"',
        )
        in_period = [c for c in completions if _within_period(c.get("completed_at"), cutoff)]
        counts = {status: 0 for status in VerificationStatus}
        for completion in in_period:
            counts[VerificationStatus(completion["verification_status"])] += 1

        transactions = await ledger_service.transactions_for_member(member_id=member_id)
        recent = [tx for tx in transactions if _within_period(tx.get("created"), cutoff)]
        credits = [tx for tx in recent if tx["transaction_type"] in CREDIT_TYPES]
        points_earned = ledger_service.transaction_total(credits)
        bonus_earned = sum(tx.get("bonus_points") or 0 for tx in credits)

        return MemberStatistics(
            member_id=member.id,
            nickname=member.nickname,
            approved_completions=counts[VerificationStatus.APPROVED],
            pending_completions=counts[VerificationStatus.PENDING],
            rejected_completions=counts[VerificationStatus.REJECTED],
            points_earned=points_earned,
            bonus_points_earned=bonus_earned,
            period_days=period_days,
        )
