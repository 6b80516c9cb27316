"""
HTTP API tests.

Requests go through the ASGI app with the database dependency pointed at
the test session; callers authenticate with real JWTs.
"""

from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.auth.jwt import create_access_token
from src.db import get_db
from src.main import app
from src.models import AgentTier


def _auth(agent) -> dict:
    return {"Authorization": f"Bearer {create_access_token(agent.id, agent.role)}"}


@pytest_asyncio.fixture
async def client(db_session):
    async def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ── health and auth ─────────────────────────────────────────


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/api/health")
        assert response.status_code == 200
        assert response.json()["service"] == "steelix-commission-engine"

    async def test_ready(self, client):
        response = await client.get("/api/health/ready")
        assert response.json() == {
            "status": "ready",
            "database": "connected",
            "tier_config": "defaults",
        }


class TestAuthentication:
    async def test_missing_token(self, client):
        response = await client.get("/api/tiers")
        assert response.status_code == 401

    async def test_garbage_token(self, client):
        response = await client.get(
            "/api/tiers", headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    async def test_cookie_token(self, client, make_agent):
        agent = await make_agent()
        token = create_access_token(agent.id, agent.role)
        response = await client.get("/api/tiers", headers={"Cookie": f"access_token={token}"})
        assert response.status_code == 200
        assert len(response.json()) == len(AgentTier)

    async def test_disabled_agent(self, client, db_session, make_agent):
        agent = await make_agent()
        headers = _auth(agent)
        agent.is_active = False
        await db_session.commit()

        response = await client.get("/api/tiers", headers=headers)
        assert response.status_code == 403


# ── commission ──────────────────────────────────────────────


class TestCommissionApi:
    async def test_calculate_for_caller(self, client, make_agent):
        upline = await make_agent(tier=AgentTier.SALES_LEADER, split=Decimal("80"))
        agent = await make_agent(recruited_by=upline)

        response = await client.post(
            "/api/commission/calculate",
            json={
                "property_price": "500000",
                "commission_rate": "2",
                "representation_type": "direct",
            },
            headers=_auth(agent),
        )

        assert response.status_code == 200
        body = response.json()
        assert Decimal(body["agent_earnings"]) == Decimal("7000")
        assert Decimal(body["leadership_bonus"]["bonus_amount"]) == Decimal("210.00")
        assert Decimal(body["summary"]["company_share"]) == Decimal("2790.00")

    async def test_settle_other_agents_transaction(self, client, make_agent, make_transaction):
        owner = await make_agent()
        stranger = await make_agent()
        transaction = await make_transaction(owner)

        response = await client.post(
            f"/api/commission/transactions/{transaction.id}/settle",
            headers=_auth(stranger),
        )

        assert response.status_code == 403
        body = response.json()
        assert body["error"] == "access_denied"
        assert set(body) == {"error", "message", "details"}


# ── tiers ───────────────────────────────────────────────────


class TestTiersApi:
    async def test_update_requires_admin(self, client, make_agent):
        agent = await make_agent()
        response = await client.put(
            "/api/tiers/advisor",
            json={"commission_split": "72", "reason": "Nope"},
            headers=_auth(agent),
        )
        assert response.status_code == 403

    async def test_admin_updates_tier(self, client, make_agent):
        admin = await make_agent(role="admin")
        response = await client.put(
            "/api/tiers/advisor",
            json={"commission_split": "72", "reason": "Market"},
            headers=_auth(admin),
        )
        assert response.status_code == 200
        assert response.json()["version"] == 1

        fetched = await client.get("/api/tiers/advisor", headers=_auth(admin))
        assert Decimal(fetched.json()["commission_split"]) == Decimal("72")

    async def test_invalid_tier_values(self, client, make_agent):
        admin = await make_agent(role="admin")
        response = await client.put(
            "/api/tiers/advisor",
            json={"commission_split": "120", "reason": "Typo"},
            headers=_auth(admin),
        )
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    async def test_demotion_conflict(self, client, make_agent):
        admin = await make_agent(role="admin")
        leader = await make_agent(tier=AgentTier.GROUP_LEADER, split=Decimal("85"))
        leader_id = leader.id

        response = await client.post(
            "/api/tiers/promote",
            json={"agent_id": leader_id, "new_tier": "advisor", "reason": "Demote"},
            headers=_auth(admin),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "demotion_not_allowed"

    async def test_promote_unknown_agent(self, client, make_agent):
        admin = await make_agent(role="admin")
        response = await client.post(
            "/api/tiers/promote",
            json={"agent_id": 9090, "new_tier": "sales_leader", "reason": "Ghost"},
            headers=_auth(admin),
        )
        assert response.status_code == 404
        assert response.json()["details"] == {"agent_id": 9090}

    async def test_agents_cannot_read_others(self, client, make_agent):
        agent = await make_agent()
        other = await make_agent()
        response = await client.get(f"/api/tiers/agents/{other.id}", headers=_auth(agent))
        assert response.status_code == 403

    async def test_upline_assignment(self, client, make_agent):
        admin = await make_agent(role="admin")
        leader = await make_agent(tier=AgentTier.TEAM_LEADER, split=Decimal("83"))
        agent = await make_agent()
        leader_id, agent_id = leader.id, agent.id

        response = await client.put(
            "/api/tiers/upline",
            json={"agent_id": agent_id, "recruited_by": leader_id},
            headers=_auth(admin),
        )
        assert response.status_code == 200

        upline = await client.get(f"/api/tiers/agents/{agent_id}/upline", headers=_auth(agent))
        assert upline.json()["upline_id"] == leader_id
        assert Decimal(upline.json()["leadership_bonus_rate"]) == Decimal("5")

    async def test_upline_can_be_cleared(self, client, make_agent):
        admin = await make_agent(role="admin")
        leader = await make_agent(tier=AgentTier.TEAM_LEADER, split=Decimal("83"))
        agent = await make_agent(recruited_by=leader)
        agent_id = agent.id

        response = await client.put(
            "/api/tiers/upline",
            json={"agent_id": agent_id, "recruited_by": None},
            headers=_auth(admin),
        )
        assert response.status_code == 200

        upline = await client.get(f"/api/tiers/agents/{agent_id}/upline", headers=_auth(agent))
        assert upline.json() is None


# ── approvals ───────────────────────────────────────────────


class TestApprovalsApi:
    async def test_submit_review_and_duplicate(self, client, make_agent, make_transaction):
        admin = await make_agent(role="admin")
        agent = await make_agent()
        transaction = await make_transaction(agent)
        # Service errors roll back the shared session, expiring loaded agents
        agent_headers, admin_headers = _auth(agent), _auth(admin)
        payload = {
            "transaction_id": transaction.id,
            "requested_amount": "7000",
            "priority": "high",
            "metadata": {"submission_notes": "Signed"},
        }

        created = await client.post("/api/approvals", json=payload, headers=agent_headers)
        assert created.status_code == 201
        approval = created.json()
        assert approval["status"] == "pending"
        assert approval["metadata"] == {"submission_notes": "Signed"}

        duplicate = await client.post("/api/approvals", json=payload, headers=agent_headers)
        assert duplicate.status_code == 409
        assert duplicate.json()["error"] == "duplicate_approval"

        denied = await client.patch(
            f"/api/approvals/{approval['id']}/status",
            json={"status": "approved"},
            headers=agent_headers,
        )
        assert denied.status_code == 403

        reviewed = await client.patch(
            f"/api/approvals/{approval['id']}/status",
            json={"status": "approved", "review_notes": "OK"},
            headers=admin_headers,
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["status"] == "approved"

        detail = await client.get(f"/api/approvals/{approval['id']}", headers=agent_headers)
        assert [h["action_type"] for h in detail.json()["workflow_history"]] == [
            "submit",
            "approve",
        ]

    async def test_bulk_reports_failures(self, client, make_agent):
        admin = await make_agent(role="admin")
        response = await client.post(
            "/api/approvals/bulk",
            json={"approval_ids": [404], "action": "reject"},
            headers=_auth(admin),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["updated_count"] == 0
        assert body["failures"][0]["error_code"] == "not_found"

    async def test_overdue_requires_reviewer(self, client, make_agent):
        agent = await make_agent()
        response = await client.get("/api/approvals/overdue", headers=_auth(agent))
        assert response.status_code == 403


# ── bonuses ─────────────────────────────────────────────────


class TestBonusesApi:
    async def test_settle_then_pay(self, client, make_agent, make_transaction):
        admin = await make_agent(role="admin")
        upline = await make_agent(tier=AgentTier.SALES_LEADER, split=Decimal("80"))
        agent = await make_agent(recruited_by=upline)
        transaction = await make_transaction(agent)
        settle_url = f"/api/commission/transactions/{transaction.id}/settle"
        admin_headers, upline_headers, agent_headers = _auth(admin), _auth(upline), _auth(agent)

        settled = await client.post(settle_url, headers=agent_headers)
        assert settled.status_code == 200
        payment_id = settled.json()["leadership_bonus_payment_id"]

        resettled = await client.post(settle_url, headers=agent_headers)
        assert resettled.status_code == 409
        assert resettled.json()["error"] == "invalid_state_transition"

        mine = await client.get("/api/bonuses/me", headers=upline_headers)
        assert Decimal(mine.json()["total_pending_bonus"]) == Decimal("210.00")

        paid = await client.post(f"/api/bonuses/{payment_id}/paid", headers=admin_headers)
        assert paid.json()["status"] == "paid"

        again = await client.post(f"/api/bonuses/{payment_id}/cancel", headers=admin_headers)
        assert again.status_code == 409
        assert again.json()["error"] == "invalid_state_transition"

    @pytest.mark.parametrize("path", ["/api/bonuses", "/api/bonuses/summary"])
    async def test_admin_only_listings(self, client, make_agent, path):
        agent = await make_agent()
        response = await client.get(path, headers=_auth(agent))
        assert response.status_code == 403
