"""
Cancellation & refunds.

A subscription can be cancelled within the first CANCELLATION_WINDOW_DAYS
days of its start. The latest captured payment is refunded in full; the
refund's immediate status decides the new subscription status:

  processed → REFUNDED           (payment: refunded)
  pending   → REFUND_PROCESSING  (payment: refund_pending, settled by webhook)
  other     → CANCELED

A refund call that fails leaves the subscription untouched.
"""

import logging
import math
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.database import utcnow
from models.enums import PaymentStatus, SubscriptionStatus
from models.payment import Payment
from models.subscription import Subscription
from services.access import DAY, get_active_subscription
from services.exceptions import GatewayError, NotFoundError, ValidationError
from services.razorpay import RazorpayClient

logger = logging.getLogger(__name__)

REFUND_REASON = "User requested cancellation within 7 days"

REFUND_OUTCOMES = {
    "processed": (SubscriptionStatus.REFUNDED, PaymentStatus.REFUNDED),
    "pending": (SubscriptionStatus.REFUND_PROCESSING, PaymentStatus.REFUND_PENDING),
}


def days_active(start: datetime, now: datetime) -> int:
    """Whole days elapsed since `start`, rounded half up."""
    return math.floor(abs(now - start) / DAY + 0.5)


async def get_latest_captured_payment(
    db: AsyncSession,
    user_id: str,
    subscription_id: uuid.UUID | None = None,
) -> Payment | None:
    """
    Newest captured payment for the subscription being cancelled. Falls back to
    the user's newest captured payment when none is linked to it.
    """
    query = (
        select(Payment)
        .where(Payment.user_id == user_id, Payment.status == PaymentStatus.CAPTURED)
        .order_by(Payment.created_at.desc())
        .limit(1)
    )
    if subscription_id is not None:
        linked = (await db.execute(
            query.where(Payment.subscription_id == subscription_id)
        )).scalar_one_or_none()
        if linked is not None:
            return linked
    return (await db.execute(query)).scalar_one_or_none()


async def cancel_subscription(
    db: AsyncSession,
    gateway: RazorpayClient,
    user_id: str,
    now: datetime | None = None,
) -> tuple[Subscription, str]:
    """
    Cancel the user's ACTIVE subscription and refund its last payment.

    Returns:
        (subscription, user-facing message)
    """
    now = now or utcnow()

    subscription = await get_active_subscription(db, user_id)
    if not subscription:
        raise NotFoundError("No active subscription found.")
    if not subscription.start_date:
        raise ValidationError("Invalid subscription start date.")

    window = settings.CANCELLATION_WINDOW_DAYS
    elapsed = days_active(subscription.start_date, now)
    if elapsed > window:
        raise ValidationError(
            f"Cancellation period expired. You can only cancel within the first {window} days. "
            f"It has been {elapsed} days.",
            code="CANCELLATION_WINDOW_CLOSED",
        )

    payment = await get_latest_captured_payment(db, user_id, subscription.id)
    if not payment or not payment.razorpay_payment_id:
        subscription.status = SubscriptionStatus.CANCELED
        subscription.end_date = now
        await db.commit()
        logger.info("Subscription %s canceled without refund (no captured payment)", subscription.id)
        return subscription, "Subscription canceled (No payment found to refund)."

    try:
        refund = await gateway.refund_payment(
            payment.razorpay_payment_id,
            speed="normal",
            notes={"reason": REFUND_REASON, "subscriptionId": str(subscription.id)},
        )
    except GatewayError as e:
        logger.error("Refund failed for subscription %s: %s", subscription.id, e.message)
        description = e.details.get("gateway_description")
        raise GatewayError(description or "Failed to process refund with payment gateway.") from e

    refund_status = refund.get("status")
    subscription_status, payment_status = REFUND_OUTCOMES.get(
        refund_status, (SubscriptionStatus.CANCELED, None)
    )
    subscription.status = subscription_status
    subscription.end_date = now
    if payment_status is not None:
        payment.status = payment_status
    await db.commit()

    logger.info(
        "Subscription %s → %s (refund %s: %s)",
        subscription.id, subscription_status.value, refund.get("id"), refund_status,
    )
    if refund_status == "processed":
        return subscription, "Success! Refund initiated and processed instantly."
    return subscription, "Cancellation successful. Refund is processing (5-7 days)."
