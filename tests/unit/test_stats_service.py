"""Unit tests for leaderboard and member statistics."""

from datetime import date

import pytest

from src.services import stats_service
from tests.unit.conftest import create_member


async def seed_completion(db, member_id: str, completed_at: str, status: str = "approved") -> None:
    await db.create_record(
        collection="task_completions",
        data={"task_id": "t1", "completed_by": member_id, "completed_at": completed_at, "verification_status": status},
    )


async def seed_transaction(db, member_id: str, created: str, transaction_type: str, points=0, bonus_points=0) -> None:
    await db.create_record(
        collection="points_transactions",
        data={
            "member_id": member_id,
            "transaction_type": transaction_type,
            "points": points,
            "bonus_points": bonus_points,
            "created": created,
        },
    )


@pytest.mark.unit
class TestPointsLeaderboard:
    """Tests for get_points_leaderboard."""

    async def test_sorted_by_balance_with_shared_ranks(self, patched_db):
        family = await patched_db.create_record(collection="families", data={"name": "Smith"})
        await create_member(patched_db, family["id"], "Zed", "member", balance=5)
        await create_member(patched_db, family["id"], "amy", "child", balance=12)
        await create_member(patched_db, family["id"], "Bob", "admin", balance=5)
        await create_member(patched_db, family["id"], "Cal", "child", balance=0)

        leaderboard = await stats_service.get_points_leaderboard(family_id=family["id"])

        assert [(e.nickname, e.points_balance, e.rank) for e in leaderboard] == [
            ("amy", 12, 1),
            ("Bob", 5, 2),
            ("Zed", 5, 2),
            ("Cal", 0, 4),
        ]

    async def test_empty_family(self, patched_db):
        assert await stats_service.get_points_leaderboard(family_id="none") == []


@pytest.mark.unit
class TestMemberStatistics:
    """Tests for get_member_statistics."""

    async def test_counts_period_by_calendar_date(self, patched_db, family):
        member_id = family.child["id"]
        await seed_completion(patched_db, member_id, "2025-08-07T08:00:00+00:00")
        await seed_completion(patched_db, member_id, "2025-08-01T23:59:00+00:00", status="pending")
        await seed_completion(patched_db, member_id, "2025-08-03T10:00:00+00:00", status="rejected")
        await seed_completion(patched_db, member_id, "2025-07-31T10:00:00+00:00")
        await seed_completion(patched_db, family.parent["id"], "2025-08-07T08:00:00+00:00")

        await seed_transaction(patched_db, member_id, "2025-08-07 08:00:00.000Z", "earned", points=10)
        await seed_transaction(patched_db, member_id, "2025-08-07 08:00:00.000Z", "bonus", bonus_points=2)
        await seed_transaction(patched_db, member_id, "2025-08-05 12:00:00.000Z", "spent", points=-4)
        await seed_transaction(patched_db, member_id, "2025-07-20 12:00:00.000Z", "earned", points=50)

        stats = await stats_service.get_member_statistics(member_id=member_id, period_days=7, today=date(2025, 8, 7))

        assert stats.nickname == "Kid"
        assert stats.approved_completions == 1
        assert stats.pending_completions == 1
        assert stats.rejected_completions == 1
        assert stats.points_earned == 12
        assert stats.bonus_points_earned == 2
        assert stats.period_days == 7

    async def test_single_day_period(self, patched_db, family):
        member_id = family.parent["id"]
        await seed_completion(patched_db, member_id, "2025-08-07T08:00:00+00:00")
        await seed_completion(patched_db, member_id, "2025-08-06T08:00:00+00:00")

        stats = await stats_service.get_member_statistics(member_id=member_id, period_days=1, today=date(2025, 8, 7))

        assert stats.approved_completions == 1
        assert stats.points_earned == 0
