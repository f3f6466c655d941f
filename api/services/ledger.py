"""
Subscription Ledger — applies captured payments and gateway events.

  verify_payment   client callback after checkout; creates or extends the
                   (user, plan) subscription
  handle_webhook   Razorpay events (refund.processed, refund.failed,
                   payment.captured); anything else is acknowledged and ignored

A Payment row linked to a subscription has already been applied, so a
replayed callback is a no-op. installments_paid never goes past the plan's
total_installments.
"""

import json
import logging
import uuid
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.database import utcnow
from models.enums import PaymentStatus, SubscriptionStatus
from models.payment import Payment
from models.plan import Plan
from models.subscription import Subscription
from services.exceptions import (
    ConflictError,
    NotFoundError,
    SignatureError,
    ValidationError,
)
from services.razorpay import verify_payment_signature, verify_webhook_signature

logger = logging.getLogger(__name__)

DEFAULT_VALIDITY_DAYS = 365


def _validity_end(plan: Plan, now: datetime) -> datetime:
    return now + timedelta(days=plan.validity_days or DEFAULT_VALIDITY_DAYS)


# ── Client-side verification ───────────────────────────────

async def verify_payment(
    db: AsyncSession,
    user_id: str,
    order_id: str,
    payment_id: str,
    signature: str,
    plan_id: uuid.UUID,
    secret: str | None = None,
    now: datetime | None = None,
) -> Subscription:
    """
    Record a captured payment against the user's subscription for `plan_id`.

    Raises:
        SignatureError: the checkout signature does not match
        NotFoundError:  unknown order (or not the caller's) or unknown plan
        ConflictError:  `plan_id` is not the plan the order was created for, or
                        another plan already has an ACTIVE subscription
    """
    secret = secret if secret is not None else settings.RAZORPAY_KEY_SECRET
    if not verify_payment_signature(order_id, payment_id, signature, secret):
        logger.warning("Signature rejected: checkout callback order=%s user=%s", order_id, user_id)
        raise SignatureError("Invalid Signature")

    now = now or utcnow()

    payment = (await db.execute(
        select(Payment).where(Payment.razorpay_order_id == order_id).with_for_update()
    )).scalar_one_or_none()
    if not payment or payment.user_id != user_id:
        raise NotFoundError("Order not found")

    # The order fixes the plan; the callback's planId must agree with it
    if payment.plan_id is not None and payment.plan_id != plan_id:
        logger.warning(
            "Plan mismatch on verify: order %s was quoted for plan %s, callback sent %s",
            order_id, payment.plan_id, plan_id,
        )
        raise ConflictError("This payment does not belong to the selected plan.", code="PLAN_MISMATCH")

    plan = await db.get(Plan, payment.plan_id or plan_id)
    if not plan:
        raise NotFoundError("Plan not found")

    if payment.subscription_id is not None:
        logger.info("Payment for order %s already applied; skipping", order_id)
        subscription = await db.get(Subscription, payment.subscription_id)
        await db.commit()
        return subscription

    other_active = (await db.execute(
        select(Subscription.id).where(
            Subscription.user_id == user_id,
            Subscription.status == SubscriptionStatus.ACTIVE,
            Subscription.plan_id != plan.id,
        )
    )).first()
    if other_active is not None:
        raise ConflictError(
            "You already have an active membership. You cannot switch plans "
            "while your current subscription is active."
        )

    subscription = (await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id, Subscription.plan_id == plan.id)
        .with_for_update()
    )).scalar_one_or_none()

    try:
        if subscription is None:
            subscription = Subscription(
                user_id=user_id,
                plan_id=plan.id,
                status=SubscriptionStatus.ACTIVE,
                start_date=now,
                end_date=_validity_end(plan, now),
                total_amount=plan.price,
                amount_paid=payment.amount,
                installments_paid=1,
            )
            db.add(subscription)
            await db.flush()
            logger.info("Subscription %s created for user %s on plan %s", subscription.id, user_id, plan.id)
        else:
            total = plan.total_installments or 1
            paid = subscription.installments_paid or 0
            if paid >= total:
                logger.warning(
                    "Subscription %s already has %d/%d installments; not incrementing",
                    subscription.id, paid, total,
                )
            else:
                subscription.installments_paid = paid + 1
            subscription.amount_paid = (subscription.amount_paid or 0) + payment.amount
            subscription.status = SubscriptionStatus.ACTIVE
            # Every captured installment restarts validity from now
            subscription.end_date = _validity_end(plan, now)
            logger.info(
                "Installment recorded: subscription %s now %d/%d",
                subscription.id, subscription.installments_paid, total,
            )

        payment.razorpay_payment_id = payment_id
        payment.status = PaymentStatus.CAPTURED
        payment.subscription_id = subscription.id
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("Concurrent verify for user %s plan %s: %s", user_id, plan.id, e)
        raise ConflictError("Payment is already being processed. Please refresh.") from e

    return subscription


async def list_payment_history(db: AsyncSession, user_id: str) -> list[Payment]:
    result = await db.execute(
        select(Payment).where(Payment.user_id == user_id).order_by(Payment.created_at.desc())
    )
    return list(result.scalars().all())


# ── Webhooks ───────────────────────────────────────────────

def _entity(payload: dict, name: str) -> dict:
    section = payload.get("payload")
    if not isinstance(section, dict):
        return {}
    wrapper = section.get(name)
    if not isinstance(wrapper, dict):
        return {}
    entity = wrapper.get("entity")
    return entity if isinstance(entity, dict) else {}


def _subscription_id_from_notes(entity: dict) -> uuid.UUID | None:
    # Razorpay sends an empty list when no notes were attached
    notes = entity.get("notes")
    if not isinstance(notes, dict):
        return None
    raw = notes.get("subscriptionId")
    if not raw:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        logger.warning("Webhook notes carry an invalid subscriptionId: %r", raw)
        return None


async def _payment_by_gateway_id(db: AsyncSession, payment_id: str | None) -> Payment | None:
    if not payment_id:
        return None
    return (await db.execute(
        select(Payment).where(Payment.razorpay_payment_id == payment_id)
    )).scalars().first()


async def _settle_refund(
    db: AsyncSession,
    event: str,
    refund: dict,
    subscription_status: SubscriptionStatus,
    payment_status: PaymentStatus,
) -> None:
    subscription_id = _subscription_id_from_notes(refund)
    if subscription_id is None:
        logger.warning("%s without subscriptionId in notes (refund %s); skipping", event, refund.get("id"))
        return

    subscription = await db.get(Subscription, subscription_id)
    if subscription is None:
        logger.warning("%s for unknown subscription %s; skipping", event, subscription_id)
        return
    subscription.status = subscription_status

    payment = await _payment_by_gateway_id(db, refund.get("payment_id"))
    if payment is not None:
        payment.status = payment_status

    await db.commit()
    logger.info("%s: subscription %s → %s", event, subscription_id, subscription_status.value)


async def _on_refund_processed(db: AsyncSession, payload: dict) -> None:
    await _settle_refund(
        db, "refund.processed", _entity(payload, "refund"),
        SubscriptionStatus.REFUNDED, PaymentStatus.REFUNDED,
    )


async def _on_refund_failed(db: AsyncSession, payload: dict) -> None:
    refund = _entity(payload, "refund")
    logger.error("Refund %s failed at the gateway", refund.get("id"))
    # The money stays captured but access must not remain ACTIVE
    await _settle_refund(
        db, "refund.failed", refund,
        SubscriptionStatus.CANCELED, PaymentStatus.CAPTURED,
    )


async def _on_payment_captured(db: AsyncSession, payload: dict) -> None:
    entity = _entity(payload, "payment")
    order_id = entity.get("order_id")
    if not order_id:
        logger.warning("payment.captured without order_id; skipping")
        return

    payment = (await db.execute(
        select(Payment).where(Payment.razorpay_order_id == order_id)
    )).scalar_one_or_none()
    if payment is None:
        logger.warning("payment.captured for unknown order %s", order_id)
        return

    payment.status = PaymentStatus.CAPTURED
    if entity.get("id"):
        payment.razorpay_payment_id = entity["id"]
    await db.commit()
    logger.info("payment.captured: order %s marked captured", order_id)


WEBHOOK_HANDLERS = {
    "refund.processed": _on_refund_processed,
    "refund.failed": _on_refund_failed,
    "payment.captured": _on_payment_captured,
}


async def handle_webhook(
    db: AsyncSession,
    raw_body: bytes,
    signature: str | None,
    secret: str | None = None,
) -> str | None:
    """
    Verify and dispatch one Razorpay webhook. Returns the event name.

    Nothing in the body is read before the signature checks out.
    """
    secret = secret if secret is not None else settings.RAZORPAY_WEBHOOK_SECRET
    if not signature or not secret:
        logger.warning("Signature rejected: webhook without signature or secret")
        raise SignatureError("Missing signature or secret")
    if not verify_webhook_signature(raw_body, signature, secret):
        logger.warning("Signature rejected: webhook body does not match signature")
        raise SignatureError("Invalid signature")

    try:
        payload = json.loads(raw_body)
    except ValueError as e:
        raise ValidationError("Invalid webhook payload") from e
    if not isinstance(payload, dict):
        raise ValidationError("Invalid webhook payload")

    event = payload.get("event")
    handler = WEBHOOK_HANDLERS.get(event)
    if handler is None:
        logger.info("Ignoring webhook event: %s", event)
        return event

    await handler(db, payload)
    return event
