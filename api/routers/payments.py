"""
Payment endpoints — Razorpay order creation and checkout verification.

  POST /orders   → create the order for the caller's next payment on a plan
  POST /verify   → checkout success callback; records the captured payment
  GET  /history  → the caller's payments, newest first

The browser drives Razorpay Checkout with the returned order id and key.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from db.database import get_db
from deps import SessionUser, get_session_user
from schemas import (
    ActionResponse,
    CreateOrderRequest,
    OrderResponse,
    PaymentResponse,
    VerifyPaymentRequest,
)
from services.ledger import list_payment_history, verify_payment
from services.orders import create_order
from services.razorpay import RazorpayClient, get_razorpay

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/orders", response_model=OrderResponse)
async def create_payment_order(
    data: CreateOrderRequest,
    user: SessionUser = Depends(get_session_user),
    gateway: RazorpayClient = Depends(get_razorpay),
    db: AsyncSession = Depends(get_db),
):
    order, quote = await create_order(db, gateway, user.user_id, data.plan_id, data.payment_mode)
    return OrderResponse(
        id=order["id"],
        amount=order.get("amount", quote.amount),
        currency=order.get("currency", settings.CURRENCY),
        description=quote.description,
        key_id=settings.RAZORPAY_KEY_ID,
    )


@router.post("/verify", response_model=ActionResponse)
async def verify_checkout(
    data: VerifyPaymentRequest,
    user: SessionUser = Depends(get_session_user),
    db: AsyncSession = Depends(get_db),
):
    await verify_payment(
        db,
        user_id=user.user_id,
        order_id=data.razorpay_order_id,
        payment_id=data.razorpay_payment_id,
        signature=data.razorpay_signature,
        plan_id=data.plan_id,
    )
    return ActionResponse(message="Payment verified")


@router.get("/history", response_model=list[PaymentResponse])
async def payment_history(
    user: SessionUser = Depends(get_session_user),
    db: AsyncSession = Depends(get_db),
):
    return await list_payment_history(db, user.user_id)
