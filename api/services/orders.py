"""
Order creation — turns a plan purchase request into a Razorpay order.

Flow:
  1. Per-user shared rate limit (one call per 2 s)
  2. ACTIVE subscription on another plan        → reject (no plan switching)
     ACTIVE subscription on this plan           → next unpaid installment only
  3. Plan exists, season ACTIVE, registration open
  4. Otherwise resume any earlier (user, plan) row at its next installment
  5. Quote, create the remote order, then persist Payment(status=created)

The Payment row is written only after Razorpay accepts the order.
"""

import logging
import time
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from models.enums import PaymentMode, PaymentStatus
from models.payment import Payment
from models.plan import Plan
from models.subscription import Subscription
from services.access import get_active_subscription
from services.exceptions import ConflictError, GatewayError, NotFoundError
from services.pricing import (
    AlreadyComplete,
    NoPriorAttempt,
    OrderQuote,
    PurchaseState,
    next_installment_state,
    quote_order,
    resume_state,
)
from services.rate_limiter import enforce_order_rate_limit
from services.razorpay import RazorpayClient
from services.seasons import ensure_registration_open

logger = logging.getLogger(__name__)


def _receipt(user_id: str) -> str:
    """Razorpay receipts are capped at 40 chars."""
    return f"rect_{user_id[:10]}_{int(time.time() * 1000)}"


async def resolve_purchase_state(db: AsyncSession, user_id: str, plan: Plan, active: Subscription | None) -> PurchaseState:
    if active is not None:
        return next_installment_state(active, active.plan)

    existing = (await db.execute(
        select(Subscription).where(Subscription.user_id == user_id, Subscription.plan_id == plan.id)
    )).scalar_one_or_none()
    return resume_state(existing)


async def create_order(
    db: AsyncSession,
    gateway: RazorpayClient,
    user_id: str,
    plan_id: uuid.UUID,
    payment_mode: PaymentMode,
) -> tuple[dict, OrderQuote]:
    """
    Create a Razorpay order for the user's next payment on `plan_id`.

    Returns:
        (razorpay order entity, quote) — the caller drives client-side checkout.
    """
    await enforce_order_rate_limit(user_id)

    active = await get_active_subscription(db, user_id)
    if active is not None:
        if active.plan_id != plan_id:
            raise ConflictError(
                "You already have an active membership. You cannot switch plans "
                "while your current subscription is active."
            )
        if isinstance(next_installment_state(active, active.plan), AlreadyComplete):
            raise ConflictError("You have already fully paid for this plan.")

    plan = await db.get(Plan, plan_id)
    if not plan:
        raise NotFoundError("Invalid Plan.")
    ensure_registration_open(plan.batch)

    state = await resolve_purchase_state(db, user_id, plan, active)
    if isinstance(state, AlreadyComplete):
        raise ConflictError("You have already fully paid for this plan.")

    quote = quote_order(plan, payment_mode, state)

    try:
        order = await gateway.create_order(
            amount=quote.amount,
            currency=settings.CURRENCY,
            receipt=_receipt(user_id),
            notes={
                "planId": str(plan.id),
                "userId": user_id,
                "isInstallment": str(quote.is_installment).lower(),
                "paymentMode": payment_mode.value,
                "installmentIndex": str(quote.installment_index),
            },
        )
    except GatewayError as e:
        logger.error("Order creation failed for user %s plan %s: %s", user_id, plan.id, e.message)
        raise GatewayError("Failed to initiate payment. Please try again.") from e

    db.add(Payment(
        user_id=user_id,
        plan_id=plan.id,
        razorpay_order_id=order["id"],
        amount=quote.amount,
        status=PaymentStatus.CREATED,
        installment_index=quote.installment_index,
    ))
    await db.commit()

    logger.info(
        "Order %s created: user=%s plan=%s amount=%s installment=%s%s",
        order["id"], user_id, plan.id, quote.amount, quote.installment_index,
        " (resumed)" if not isinstance(state, NoPriorAttempt) and active is None else "",
    )
    return order, quote
