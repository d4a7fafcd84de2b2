"""Tests for the HTTP API."""

import httpx
import pytest

from src.core.config import constants
from src.main import app


@pytest.fixture
async def client(patched_db):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def as_member(member: dict) -> dict[str, str]:
    return {constants.MEMBER_HEADER: member["id"]}


@pytest.mark.unit
class TestAuthentication:
    """Tests for resolving the acting member."""

    async def test_missing_header(self, client, family):
        response = await client.get(f"/families/{family.family['id']}/leaderboard")
        assert response.status_code == 401

    async def test_unknown_member(self, client, family):
        response = await client.get(
            f"/families/{family.family['id']}/leaderboard", headers={constants.MEMBER_HEADER: "ghost"}
        )
        assert response.status_code == 401

    async def test_health(self, client):
        response = await client.get("/health")
        assert response.json() == {"status": "healthy"}

    def test_member_header_is_not_a_path_parameter(self):
        operation = app.openapi()["paths"]["/members/{member_id}/stats"]["get"]
        locations = {(param["name"], param["in"]) for param in operation["parameters"]}

        assert ("member_id", "path") in locations
        assert (constants.MEMBER_HEADER, "header") in locations

    async def test_header_member_differs_from_path_member(self, client, family):
        await client.post(
            f"/tasks/{family.task['id']}/complete", json={"date": "2025-08-06"}, headers=as_member(family.parent)
        )

        response = await client.get(f"/members/{family.parent['id']}/transactions", headers=as_member(family.admin))

        assert response.status_code == 200
        assert {tx["member_id"] for tx in response.json()} == {family.parent["id"]}

    async def test_member_lookup_storage_failure(self, client, family, patched_db):
        patched_db.fail_on("get", "members")

        response = await client.get(f"/families/{family.family['id']}/leaderboard", headers=as_member(family.admin))

        assert response.status_code == 503


@pytest.mark.unit
class TestCompletionEndpoints:
    """Tests for completing, verifying and undoing over HTTP."""

    async def test_due_tasks(self, client, family):
        response = await client.get(
            f"/families/{family.family['id']}/tasks/due",
            params={"date": "2025-08-06"},
            headers=as_member(family.child),
        )

        assert response.status_code == 200
        assert [d["original_index"] for d in response.json()] == [0]

    async def test_due_tasks_bad_date(self, client, family):
        response = await client.get(
            f"/families/{family.family['id']}/tasks/due",
            params={"date": "not-a-date"},
            headers=as_member(family.child),
        )

        assert response.status_code == 422
        assert response.json()["detail"]["kind"] == "invalid_input"

    async def test_due_tasks_other_family(self, client, family):
        response = await client.get(
            "/families/elsewhere/tasks/due", params={"date": "2025-08-06"}, headers=as_member(family.admin)
        )
        assert response.status_code == 403

    async def test_complete_and_undo(self, client, family, patched_db):
        response = await client.post(
            f"/tasks/{family.task['id']}/complete",
            json={"date": "2025-08-06", "time_spent_minutes": 40},
            headers=as_member(family.parent),
        )
        assert response.status_code == 201
        body = response.json()
        assert body["new_balance"] == 12
        completion_id = body["completion"]["id"]

        response = await client.delete(f"/completions/{completion_id}", headers=as_member(family.parent))

        assert response.status_code == 200
        assert response.json()["points_removed"] == 12
        assert response.json()["new_balance"] == 0

    async def test_negative_time_spent_is_validation_error(self, client, family):
        response = await client.post(
            f"/tasks/{family.task['id']}/complete",
            json={"date": "2025-08-06", "time_spent_minutes": -1},
            headers=as_member(family.parent),
        )
        assert response.status_code == 422

    async def test_unknown_task(self, client, family):
        response = await client.post(
            "/tasks/missing/complete", json={"date": "2025-08-06"}, headers=as_member(family.parent)
        )
        assert response.status_code == 404

    async def test_storage_failure(self, client, family, patched_db):
        patched_db.fail_on("update", "members")

        response = await client.post(
            f"/tasks/{family.task['id']}/complete", json={"date": "2025-08-06"}, headers=as_member(family.parent)
        )

        assert response.status_code == 503
        assert patched_db.records("task_completions") == []

    async def test_verification_flow(self, client, family):
        response = await client.post(
            f"/tasks/{family.task['id']}/complete", json={"date": "2025-08-06"}, headers=as_member(family.child)
        )
        completion_id = response.json()["completion"]["id"]
        assert response.json()["completion"]["verification_status"] == "pending"

        pending = await client.get(
            f"/families/{family.family['id']}/verifications/pending", headers=as_member(family.parent)
        )
        assert [c["id"] for c in pending.json()] == [completion_id]

        denied = await client.post(
            f"/completions/{completion_id}/verify", json={"approved": True}, headers=as_member(family.child)
        )
        assert denied.status_code == 403

        approved = await client.post(
            f"/completions/{completion_id}/verify", json={"approved": True}, headers=as_member(family.admin)
        )
        assert approved.status_code == 200
        assert approved.json()["new_balance"] == 10

        again = await client.post(
            f"/completions/{completion_id}/verify", json={"approved": False}, headers=as_member(family.admin)
        )
        assert again.status_code == 409

    async def test_child_cannot_list_pending(self, client, family):
        response = await client.get(
            f"/families/{family.family['id']}/verifications/pending", headers=as_member(family.child)
        )
        assert response.status_code == 403


@pytest.mark.unit
class TestPointsEndpoints:
    """Tests for ledger, reconcile, leaderboard and statistics endpoints."""

    async def _complete(self, client, family, member):
        response = await client.post(
            f"/tasks/{family.task['id']}/complete",
            json={"date": "2025-08-06", "time_spent_minutes": 35},
            headers=as_member(member),
        )
        assert response.status_code == 201

    async def test_own_transactions(self, client, family):
        await self._complete(client, family, family.parent)

        response = await client.get(f"/members/{family.parent['id']}/transactions", headers=as_member(family.parent))
        bonus = await client.get(
            f"/members/{family.parent['id']}/transactions",
            params={"bonus_only": True},
            headers=as_member(family.parent),
        )
        earned = await client.get(
            f"/members/{family.parent['id']}/transactions",
            params={"type": "earned"},
            headers=as_member(family.parent),
        )

        assert len(response.json()) == 2
        assert [tx["bonus_points"] for tx in bonus.json()] == [1]
        assert [tx["points"] for tx in earned.json()] == [10]

    async def test_child_cannot_view_others_transactions(self, client, family):
        response = await client.get(f"/members/{family.parent['id']}/transactions", headers=as_member(family.child))
        assert response.status_code == 403

    async def test_reconcile_requires_admin(self, client, family, patched_db):
        await patched_db.update_record(
            collection="members", record_id=family.child["id"], data={"points_balance": 8}
        )

        denied = await client.post(f"/members/{family.child['id']}/reconcile", headers=as_member(family.parent))
        repaired = await client.post(f"/members/{family.child['id']}/reconcile", headers=as_member(family.admin))

        assert denied.status_code == 403
        assert repaired.json()["repaired"] is True
        assert repaired.json()["ledger_balance"] == 0

    async def test_leaderboard_and_stats(self, client, family):
        await self._complete(client, family, family.parent)

        leaderboard = await client.get(f"/families/{family.family['id']}/leaderboard", headers=as_member(family.child))
        stats = await client.get(f"/members/{family.parent['id']}/stats", headers=as_member(family.admin))
        too_long = await client.get(
            f"/members/{family.parent['id']}/stats", params={"period_days": 3650}, headers=as_member(family.admin)
        )

        assert leaderboard.json()[0]["member_id"] == family.parent["id"]
        assert leaderboard.json()[0]["points_balance"] == 11
        assert stats.status_code == 200
        assert stats.json()["nickname"] == "Dad"
        assert stats.json()["period_days"] == 7
        assert too_long.status_code == 422
