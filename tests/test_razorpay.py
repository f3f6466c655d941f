"""Tests for the Razorpay gateway client and signature checks (mocked transport)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import json

import httpx
import pytest

from services.exceptions import GatewayError
from services.razorpay import RazorpayClient, verify_payment_signature, verify_webhook_signature
from conftest import sign


def _client(handler, key_id="rzp_test_key", key_secret="secret"):
    return RazorpayClient(
        key_id=key_id,
        key_secret=key_secret,
        base_url="https://api.razorpay.test/v1",
        transport=httpx.MockTransport(handler),
    )


def test_payment_signature_valid():
    signature = sign("secret", "order_1|pay_1")
    assert verify_payment_signature("order_1", "pay_1", signature, "secret")


def test_payment_signature_mismatch():
    signature = sign("secret", "order_1|pay_1")
    assert not verify_payment_signature("order_1", "pay_2", signature, "secret")
    assert not verify_payment_signature("order_1", "pay_1", signature, "other-secret")


def test_payment_signature_missing_inputs():
    assert not verify_payment_signature("order_1", "pay_1", "", "secret")
    assert not verify_payment_signature("order_1", "pay_1", "abc", None)


def test_webhook_signature_covers_raw_body():
    body = b'{"event":"payment.captured"}'
    signature = sign("whsec", body)
    assert verify_webhook_signature(body, signature, "whsec")
    assert not verify_webhook_signature(b'{"event": "payment.captured"}', signature, "whsec")
    assert not verify_webhook_signature(body, None, "whsec")


@pytest.mark.asyncio
async def test_create_order_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "order_abc", "amount": 900000, "currency": "INR"})

    order = await _client(handler).create_order(900000, "INR", "rect_user_1", {"planId": "p1"})

    assert order["id"] == "order_abc"
    assert seen["method"] == "POST"
    assert seen["url"] == "https://api.razorpay.test/v1/orders"
    assert seen["auth"].startswith("Basic ")
    assert seen["body"] == {
        "amount": 900000,
        "currency": "INR",
        "receipt": "rect_user_1",
        "notes": {"planId": "p1"},
    }


@pytest.mark.asyncio
async def test_refund_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "rfnd_1", "status": "pending"})

    refund = await _client(handler).refund_payment("pay_1", notes={"subscriptionId": "s1"})

    assert refund["status"] == "pending"
    assert seen["path"] == "/v1/payments/pay_1/refund"
    assert seen["body"] == {"speed": "normal", "notes": {"subscriptionId": "s1"}}


@pytest.mark.asyncio
async def test_gateway_error_carries_description():
    def handler(request):
        return httpx.Response(400, json={"error": {"code": "BAD_REQUEST_ERROR", "description": "The payment has been fully refunded already"}})

    with pytest.raises(GatewayError) as exc:
        await _client(handler).refund_payment("pay_1")
    assert exc.value.message == "The payment has been fully refunded already"
    assert exc.value.details["gateway_description"] == "The payment has been fully refunded already"
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_gateway_error_without_description():
    def handler(request):
        return httpx.Response(500, text="upstream exploded")

    with pytest.raises(GatewayError) as exc:
        await _client(handler).create_order(100, "INR", "r")
    assert exc.value.message == "Payment gateway request failed."
    assert "gateway_description" not in exc.value.details


@pytest.mark.asyncio
async def test_network_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(GatewayError) as exc:
        await _client(handler).create_order(100, "INR", "r")
    assert exc.value.message == "Failed to contact payment gateway."


@pytest.mark.asyncio
async def test_order_without_id_rejected():
    def handler(request):
        return httpx.Response(200, json={"amount": 100})

    with pytest.raises(GatewayError):
        await _client(handler).create_order(100, "INR", "r")


@pytest.mark.asyncio
async def test_unconfigured_client():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(GatewayError) as exc:
        await _client(handler, key_secret=None).create_order(100, "INR", "r")
    assert exc.value.message == "Payment gateway is not configured."
