"""HTTP-level tests through the ASGI app (dependencies overridden)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import pytest_asyncio
from jose import jwt

from config import settings
from db.database import get_db
from main import app
from services.razorpay import get_razorpay
from conftest import sign


def _token(user_id="user-1", role="USER"):
    return jwt.encode({"sub": user_id, "role": role}, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def _auth(**kwargs):
    return {"Authorization": f"Bearer {_token(**kwargs)}"}


@pytest_asyncio.fixture
async def client(session_factory, gateway):
    async def _get_test_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_razorpay] = lambda: gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_admin_requires_session(client):
    resp = await client.post("/api/admin/seasons", json={})
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "error": "Unauthorized", "code": "UNAUTHORIZED"}


@pytest.mark.asyncio
async def test_admin_rejects_plain_user(client):
    resp = await client.delete(
        "/api/admin/plans/00000000-0000-0000-0000-000000000000", headers=_auth(role="USER"),
    )
    assert resp.status_code == 403
    assert resp.json()["error"] == "Unauthorized"


@pytest.mark.asyncio
async def test_bad_token_rejected(client):
    resp = await client.get("/api/subscription/access", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_launch_season_and_catalog(client, season):
    resp = await client.post(
        "/api/admin/seasons",
        headers=_auth(role="ADMIN"),
        json={"season_name": "Season 2", "plans": [{"title": "Starter", "price": 4999}]},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ACTIVE"
    assert body["plans"][0]["price"] == 499900

    public = (await client.get("/api/plans")).json()
    assert [b["name"] for b in public] == ["Season 2"]

    admin_view = (await client.get("/api/plans", headers=_auth(role="ADMIN"))).json()
    assert [b["name"] for b in admin_view] == ["Season 2", "Season 1"]


@pytest.mark.asyncio
async def test_validation_error_names_field(client):
    resp = await client.post(
        "/api/admin/seasons",
        headers=_auth(role="ADMIN"),
        json={"season_name": "A", "plans": [{"title": "Starter", "price": 10}]},
    )
    assert resp.status_code == 422
    assert resp.json()["error"].startswith("season_name:")


@pytest.mark.asyncio
async def test_delete_season_with_sales_is_409(client, season):
    with patch("services.orders.enforce_order_rate_limit", new_callable=AsyncMock):
        gateway_order = await client.post(
            "/api/payment/orders",
            headers=_auth(),
            json={"plan_id": str(season.full_plan.id)},
        )
    assert gateway_order.status_code == 200
    order_id = gateway_order.json()["id"]

    resp = await client.post(
        "/api/payment/verify",
        headers=_auth(),
        json={
            "razorpay_order_id": order_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": sign(settings.RAZORPAY_KEY_SECRET, f"{order_id}|pay_1"),
            "planId": str(season.full_plan.id),
        },
    )
    assert resp.json() == {"success": True, "message": "Payment verified"}

    resp = await client.delete(f"/api/admin/seasons/{season.batch.id}", headers=_auth(role="ADMIN"))
    assert resp.status_code == 409
    assert resp.json()["code"] == "INTEGRITY_VIOLATION"


@pytest.mark.asyncio
async def test_purchase_then_access(client, season, gateway):
    gateway.create_order.return_value = {"id": "order_abc", "amount": 900_000, "currency": "INR"}
    with patch("services.orders.enforce_order_rate_limit", new_callable=AsyncMock):
        resp = await client.post(
            "/api/payment/orders",
            headers=_auth(),
            json={"plan_id": str(season.full_plan.id), "payment_mode": "FULL"},
        )
    assert resp.status_code == 200
    assert resp.json() == {
        "success": True,
        "id": "order_abc",
        "amount": 900_000,
        "currency": "INR",
        "description": "Full Payment (Inc. 10% Discount)",
        "key_id": "rzp_test_key",
    }

    resp = await client.get("/api/subscription/access", headers=_auth())
    assert resp.json()["status"] == "NO_SUBSCRIPTION"

    await client.post(
        "/api/payment/verify",
        headers=_auth(),
        json={
            "razorpay_order_id": "order_abc",
            "razorpay_payment_id": "pay_abc",
            "razorpay_signature": sign(settings.RAZORPAY_KEY_SECRET, "order_abc|pay_abc"),
            "planId": str(season.full_plan.id),
        },
    )

    overview = (await client.get("/api/subscription/me", headers=_auth())).json()
    assert overview["access"]["status"] == "GRANTED"
    assert overview["access"]["has_access"] is True
    assert overview["access"]["subscription"]["plan"]["title"] == "Orbit Pass"
    assert [p["status"] for p in overview["payments"]] == ["captured"]


@pytest.mark.asyncio
async def test_installment_order_cannot_claim_full_plan(client, season, gateway):
    gateway.create_order.return_value = {"id": "order_flex", "amount": 250_000, "currency": "INR"}
    with patch("services.orders.enforce_order_rate_limit", new_callable=AsyncMock):
        await client.post(
            "/api/payment/orders",
            headers=_auth(),
            json={"plan_id": str(season.installment_plan.id), "payment_mode": "INSTALLMENT"},
        )

    resp = await client.post(
        "/api/payment/verify",
        headers=_auth(),
        json={
            "razorpay_order_id": "order_flex",
            "razorpay_payment_id": "pay_flex",
            "razorpay_signature": sign(settings.RAZORPAY_KEY_SECRET, "order_flex|pay_flex"),
            "planId": str(season.full_plan.id),
        },
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "PLAN_MISMATCH"

    resp = await client.get("/api/subscription/access", headers=_auth())
    assert resp.json()["status"] == "NO_SUBSCRIPTION"

@pytest.mark.asyncio
async def test_verify_bad_signature(client, season):
    resp = await client.post(
        "/api/payment/verify",
        headers=_auth(),
        json={
            "razorpay_order_id": "order_x",
            "razorpay_payment_id": "pay_x",
            "razorpay_signature": "bogus",
            "planId": str(season.full_plan.id),
        },
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid Signature"


@pytest.mark.asyncio
async def test_cancel_without_subscription(client):
    resp = await client.post("/api/subscription/cancel", headers=_auth())
    assert resp.status_code == 404
    assert resp.json()["error"] == "No active subscription found."


@pytest.mark.asyncio
async def test_webhook_acknowledges_unknown_event(client):
    body = json.dumps({"event": "order.paid", "payload": {}}).encode()
    resp = await client.post(
        "/api/payment/webhook",
        content=body,
        headers={"X-Razorpay-Signature": sign(settings.RAZORPAY_WEBHOOK_SECRET, body)},
    )
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_webhook_rejects_bad_signature(client):
    resp = await client.post(
        "/api/payment/webhook",
        content=b'{"event":"refund.processed"}',
        headers={"X-Razorpay-Signature": "bogus"},
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_SIGNATURE"


@pytest.mark.asyncio
async def test_webhook_missing_signature(client):
    resp = await client.post("/api/payment/webhook", content=b"{}")
    assert resp.status_code == 400
