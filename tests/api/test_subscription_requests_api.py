"""Manual-transfer subscription requests and their admin decisions."""

from datetime import datetime, timedelta

import pytest

from mentora.db.models import SubscriptionRequest

REQUESTS = "/api/v1/subscriptions/requests"


def decision_url(request_id: str) -> str:
    return f"/api/v1/admin/subscription-requests/{request_id}/decision"


@pytest.fixture
def admin(make_user):
    async def _make(uid: str = "admin") -> str:
        await make_user(uid, roles=["admin"])
        return uid

    return _make


async def _submit(client, auth_headers, uid: str = "u1", amount: int = 30000) -> dict:
    response = await client.post(
        REQUESTS,
        json={"amount": amount, "proofUrl": "https://files.example.com/proof.jpg", "note": "BCA transfer"},
        headers=auth_headers(uid),
    )
    assert response.status_code == 201
    return response.json()


class TestCreateRequest:
    @pytest.mark.asyncio
    async def test_creates_pending_request(self, client, auth_headers):
        data = await _submit(client, auth_headers)
        assert data["status"] == "pending"
        assert data["uid"] == "u1"
        assert data["amount"] == 30000
        assert data["proofUrl"] == "https://files.example.com/proof.jpg"
        assert data["decidedBy"] is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"amount": -1, "proofUrl": "x"}, {"amount": 1, "proofUrl": ""}, {"amount": 1}])
    async def test_invalid_body(self, client, auth_headers, body):
        response = await client.post(REQUESTS, json=body, headers=auth_headers("u1"))
        assert response.status_code == 400


class TestDecision:
    @pytest.mark.asyncio
    async def test_approval_opens_subscription(self, client, auth_headers, admin, clock):
        await admin()
        req = await _submit(client, auth_headers)

        response = await client.post(decision_url(req["id"]), json={"decision": "approved"}, headers=auth_headers("admin"))
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "approved"
        assert data["decidedBy"] == "admin"
        assert datetime.fromisoformat(data["decidedAt"]) == clock.now

        sub = (await client.get("/api/v1/subscriptions/me", headers=auth_headers("u1"))).json()
        assert sub["subscriptionActive"] is True
        assert sub["method"] == "manual_transfer"
        assert sub["planId"] == "manual"
        assert datetime.fromisoformat(sub["currentPeriodEnd"]) == clock.now + timedelta(days=30)

    @pytest.mark.asyncio
    async def test_second_decision_conflicts(self, client, auth_headers, admin, fetch):
        await admin()
        req = await _submit(client, auth_headers)
        await client.post(decision_url(req["id"]), json={"decision": "approved"}, headers=auth_headers("admin"))

        response = await client.post(decision_url(req["id"]), json={"decision": "rejected"}, headers=auth_headers("admin"))
        assert response.status_code == 409
        assert response.json() == {"error": "Request already approved"}
        assert (await fetch(SubscriptionRequest, req["id"])).status == "approved"

    @pytest.mark.asyncio
    async def test_two_approved_requests_chain(self, client, auth_headers, admin, clock):
        await admin()
        first = await _submit(client, auth_headers)
        second = await _submit(client, auth_headers)
        for req in (first, second):
            await client.post(decision_url(req["id"]), json={"decision": "approved"}, headers=auth_headers("admin"))

        sub = (await client.get("/api/v1/subscriptions/me", headers=auth_headers("u1"))).json()
        assert datetime.fromisoformat(sub["currentPeriodEnd"]) == clock.now + timedelta(days=60)

    @pytest.mark.asyncio
    async def test_rejection_leaves_subscription_alone(self, client, auth_headers, admin):
        await admin()
        req = await _submit(client, auth_headers)
        response = await client.post(decision_url(req["id"]), json={"decision": "rejected"}, headers=auth_headers("admin"))
        assert response.json()["status"] == "rejected"

        sub = (await client.get("/api/v1/subscriptions/me", headers=auth_headers("u1"))).json()
        assert sub["subscriptionActive"] is False
        assert sub["status"] is None

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client, auth_headers):
        req = await _submit(client, auth_headers)
        response = await client.post(decision_url(req["id"]), json={"decision": "approved"}, headers=auth_headers("u1"))
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_unknown_request(self, client, auth_headers, admin):
        await admin()
        response = await client.post(decision_url("missing"), json={"decision": "approved"}, headers=auth_headers("admin"))
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_decision(self, client, auth_headers, admin):
        await admin()
        req = await _submit(client, auth_headers)
        response = await client.post(decision_url(req["id"]), json={"decision": "maybe"}, headers=auth_headers("admin"))
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_admin_lists_by_status(self, client, auth_headers, admin):
        await admin()
        first = await _submit(client, auth_headers)
        await _submit(client, auth_headers, uid="u2")
        await client.post(decision_url(first["id"]), json={"decision": "rejected"}, headers=auth_headers("admin"))

        pending = (await client.get(
            "/api/v1/admin/subscription-requests", params={"status": "pending"}, headers=auth_headers("admin")
        )).json()
        assert [r["uid"] for r in pending] == ["u2"]
