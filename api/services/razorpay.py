"""
Razorpay Gateway — REST client and signature checks.

Endpoints used:
  POST /orders                    → create an order (amount in paise)
  POST /payments/{id}/refund      → refund a captured payment

Signatures:
  Checkout callback: HMAC_SHA256(key_secret, "<order_id>|<payment_id>")
  Webhook:           HMAC_SHA256(webhook_secret, raw_body)
"""

import hashlib
import hmac
import logging
from typing import Any

import httpx

from config import settings
from services.exceptions import GatewayError

logger = logging.getLogger(__name__)


def _hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def verify_payment_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """Check the signature Razorpay Checkout hands back to the browser."""
    if not signature or not secret:
        return False
    expected = _hmac_sha256(secret, f"{order_id}|{payment_id}".encode())
    return hmac.compare_digest(expected, signature)


def verify_webhook_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """Check the X-Razorpay-Signature header against the raw request body."""
    if not signature or not secret:
        return False
    expected = _hmac_sha256(secret, raw_body)
    return hmac.compare_digest(expected, signature)


def _error_description(resp: httpx.Response) -> str | None:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error") or {}
        if isinstance(error, dict):
            return error.get("description")
    return None


class RazorpayClient:
    """Thin async wrapper over the Razorpay REST API."""

    def __init__(
        self,
        key_id: str | None,
        key_secret: str | None,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def _request(self, method: str, path: str, payload: dict[str, Any] | None = None) -> dict[str, Any]:
        if not self.key_id or not self.key_secret:
            raise GatewayError("Payment gateway is not configured.")

        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self._transport,
            ) as client:
                resp = await client.request(method, url, json=payload)
        except httpx.HTTPError as e:
            logger.error("Razorpay %s %s failed: %s", method, path, e)
            raise GatewayError("Failed to contact payment gateway.") from e

        if resp.status_code >= 400:
            description = _error_description(resp)
            logger.error("Razorpay %s %s → %s: %s", method, path, resp.status_code, description)
            raise GatewayError(
                description or "Payment gateway request failed.",
                details={"gateway_description": description} if description else None,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise GatewayError("Invalid response received from payment gateway.") from e
        if not isinstance(data, dict):
            raise GatewayError("Unexpected response format from payment gateway.")
        return data

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Create an order. Returns Razorpay's order entity ({id, amount, currency, ...})."""
        order = await self._request("POST", "/orders", {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        })
        if not order.get("id"):
            raise GatewayError("Payment gateway returned no order id.")
        return order

    async def refund_payment(
        self,
        payment_id: str,
        speed: str = "normal",
        notes: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """Refund a captured payment in full. Returns the refund entity ({id, status, ...})."""
        return await self._request("POST", f"/payments/{payment_id}/refund", {
            "speed": speed,
            "notes": notes or {},
        })


def get_razorpay() -> RazorpayClient:
    """FastAPI dependency — client built from settings."""
    return RazorpayClient(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        base_url=settings.RAZORPAY_API_BASE,
        timeout=settings.RAZORPAY_TIMEOUT_SECONDS,
    )
