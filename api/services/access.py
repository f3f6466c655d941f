"""
Access Evaluator — decides whether a user may use paid features right now.

Inputs are the user's ACTIVE subscription, its plan, and the wall clock.
Day arithmetic is in whole 24-hour days (no calendar-month awareness):

  expiry      = start + validity_days
  coverage    = start + (validity_days / total_installments) * installments_paid
  cutoff      = coverage + 24h grace
  days_due    = ceil((coverage - now) / 1 day)

  now > expiry                 → EXPIRED
  fully paid                   → GRANTED
  now > cutoff                 → OVERDUE_PAYMENT   (access revoked)
  days_due <= 30               → PAYMENT_DUE_SOON  (access kept, flagged)
  otherwise                    → GRANTED
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.database import utcnow
from models.enums import SubscriptionStatus
from models.plan import Plan
from models.subscription import Subscription

DAY = timedelta(days=1)


class AccessStatus(str, Enum):
    GRANTED = "GRANTED"
    PAYMENT_DUE_SOON = "PAYMENT_DUE_SOON"
    NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
    OVERDUE_PAYMENT = "OVERDUE_PAYMENT"
    EXPIRED = "EXPIRED"


@dataclass
class AccessResult:
    status: AccessStatus
    subscription: Subscription | None = None
    message: str | None = None
    next_due_date: datetime | None = None
    days_until_due: int | None = None

    @property
    def has_access(self) -> bool:
        return self.status in (AccessStatus.GRANTED, AccessStatus.PAYMENT_DUE_SOON)


def evaluate_access(
    subscription: Subscription | None,
    plan: Plan | None,
    now: datetime,
    grace_period_hours: int = 24,
    due_soon_days: int = 30,
) -> AccessResult:
    """Pure evaluation; identical inputs always give an identical result."""
    if subscription is None or plan is None:
        return AccessResult(
            status=AccessStatus.NO_SUBSCRIPTION,
            message="User has no active subscription.",
        )

    validity_days = plan.validity_days
    if not validity_days:
        return AccessResult(
            status=AccessStatus.EXPIRED,
            subscription=subscription,
            message="Plan validity is not set.",
        )

    start = subscription.start_date
    expiry_date = start + validity_days * DAY
    if now > expiry_date:
        return AccessResult(
            status=AccessStatus.EXPIRED,
            subscription=subscription,
            message="Plan validity has expired.",
        )

    total_installments = plan.total_installments or 1
    # A stored 0 still counts as the first installment
    paid_count = subscription.installments_paid or 1

    if paid_count >= total_installments:
        return AccessResult(status=AccessStatus.GRANTED, subscription=subscription)

    days_covered = (validity_days / total_installments) * paid_count
    coverage_end = start + days_covered * DAY
    strict_cutoff = coverage_end + timedelta(hours=grace_period_hours)
    days_until_due = math.ceil((coverage_end - now) / DAY)

    if now > strict_cutoff:
        return AccessResult(
            status=AccessStatus.OVERDUE_PAYMENT,
            subscription=subscription,
            next_due_date=coverage_end,
            days_until_due=days_until_due,
            message=f"Installment overdue. Your access expired on {coverage_end.strftime('%a %b %d %Y')}.",
        )

    if days_until_due <= due_soon_days:
        return AccessResult(
            status=AccessStatus.PAYMENT_DUE_SOON,
            subscription=subscription,
            next_due_date=coverage_end,
            days_until_due=days_until_due,
            message=f"Upcoming payment. Due in {days_until_due} days.",
        )

    return AccessResult(
        status=AccessStatus.GRANTED,
        subscription=subscription,
        next_due_date=coverage_end,
        days_until_due=days_until_due,
    )


async def get_active_subscription(db: AsyncSession, user_id: str) -> Subscription | None:
    """The user's most recent ACTIVE subscription (plan eagerly loaded)."""
    result = await db.execute(
        select(Subscription)
        .where(Subscription.user_id == user_id, Subscription.status == SubscriptionStatus.ACTIVE)
        .order_by(Subscription.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def check_subscription_access(
    db: AsyncSession,
    user_id: str,
    now: datetime | None = None,
) -> AccessResult:
    """Fetch the user's subscription and evaluate it against the clock."""
    sub = await get_active_subscription(db, user_id)
    return evaluate_access(
        sub,
        sub.plan if sub else None,
        now or utcnow(),
        grace_period_hours=settings.GRACE_PERIOD_HOURS,
        due_soon_days=settings.DUE_SOON_DAYS,
    )
