"""Pytest configuration and fixtures for unit tests."""

from dataclasses import dataclass
from typing import Any

import pytest

from src.core.events import RefreshNotifier, RefreshReason
from tests.unit.mocks import InMemoryDBClient


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)
    return in_memory_db


@dataclass
class FamilyFixture:
    """Records of a seeded family."""

    family: dict[str, Any]
    admin: dict[str, Any]
    parent: dict[str, Any]
    child: dict[str, Any]
    task: dict[str, Any]


async def create_member(db: InMemoryDBClient, family_id: str, nickname: str, role: str, balance: int = 0) -> dict:
    return await db.create_record(
        collection="members",
        data={"family_id": family_id, "nickname": nickname, "role": role, "points_balance": balance},
    )


async def create_task(db: InMemoryDBClient, family_id: str, **overrides: Any) -> dict:
    data = {
        "family_id": family_id,
        "title": "Empty dishwasher",
        "points": 10,
        "estimated_minutes": 30,
        "recurring_days": None,
        "is_active": True,
    }
    data.update(overrides)
    return await db.create_record(collection="tasks", data=data)


@pytest.fixture
async def family(patched_db: InMemoryDBClient) -> FamilyFixture:
    """A family with an admin, a member, a child and one 10-point task."""
    family = await patched_db.create_record(
        collection="families",
        data={"name": "Smith", "require_child_verification": True},
    )
    return FamilyFixture(
        family=family,
        admin=await create_member(patched_db, family["id"], "Mom", "admin"),
        parent=await create_member(patched_db, family["id"], "Dad", "member"),
        child=await create_member(patched_db, family["id"], "Kid", "child"),
        task=await create_task(patched_db, family["id"]),
    )


async def balance_of(db: InMemoryDBClient, member_id: str) -> int:
    member = await db.get_record(collection="members", record_id=member_id)
    return member["points_balance"]


def ledger_sum(db: InMemoryDBClient, member_id: str) -> int:
    return sum(
        (tx.get("points") or 0) + (tx.get("bonus_points") or 0)
        for tx in db.records("points_transactions")
        if tx["member_id"] == member_id
    )


class RecordingObserver:
    """Refresh observer that remembers every notification."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, RefreshReason]] = []

    def __call__(self, family_id: str, reason: RefreshReason) -> None:
        self.calls.append((family_id, reason))


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def notifier(observer: RecordingObserver) -> RefreshNotifier:
    refresh_notifier = RefreshNotifier()
    refresh_notifier.register(observer)
    return refresh_notifier
