"""Subscription endpoints — access check, overview and self-service cancellation."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from deps import SessionUser, get_session_user
from schemas import (
    AccessResponse,
    CancellationResponse,
    PaymentResponse,
    SubscriptionOverview,
    SubscriptionResponse,
)
from services.access import AccessResult, check_subscription_access
from services.cancellation import cancel_subscription
from services.ledger import list_payment_history
from services.razorpay import RazorpayClient, get_razorpay

router = APIRouter()


def _access_response(result: AccessResult) -> AccessResponse:
    return AccessResponse(
        status=result.status.value,
        has_access=result.has_access,
        message=result.message,
        next_due_date=result.next_due_date,
        days_until_due=result.days_until_due,
        subscription=SubscriptionResponse.model_validate(result.subscription) if result.subscription else None,
    )


@router.get("/access", response_model=AccessResponse)
async def get_access(
    user: SessionUser = Depends(get_session_user),
    db: AsyncSession = Depends(get_db),
):
    """Whether the caller may use paid features right now."""
    return _access_response(await check_subscription_access(db, user.user_id))


@router.get("/me", response_model=SubscriptionOverview)
async def get_my_subscription(
    user: SessionUser = Depends(get_session_user),
    db: AsyncSession = Depends(get_db),
):
    access = await check_subscription_access(db, user.user_id)
    payments = await list_payment_history(db, user.user_id)
    return SubscriptionOverview(
        access=_access_response(access),
        payments=[PaymentResponse.model_validate(p) for p in payments],
    )


@router.post("/cancel", response_model=CancellationResponse)
async def cancel_my_subscription(
    user: SessionUser = Depends(get_session_user),
    gateway: RazorpayClient = Depends(get_razorpay),
    db: AsyncSession = Depends(get_db),
):
    """Cancel within the refund window; the last captured payment is refunded."""
    subscription, message = await cancel_subscription(db, gateway, user.user_id)
    return CancellationResponse(message=message, status=subscription.status)
