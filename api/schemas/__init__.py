"""Pydantic schemas for API request/response models."""

from __future__ import annotations
import uuid
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.enums import BatchStatus, PaymentMode, PaymentStatus, SubscriptionStatus


# ── Season / Plan admin ────────────────────────────────────

class PlanInput(BaseModel):
    title: str = Field(min_length=2)
    description: str | None = None
    price: float = Field(ge=1)  # rupees; stored as paise
    validity_days: int = Field(default=365, gt=0)
    features: list[str] = []
    full_payment_discount: int = Field(default=0, ge=0, le=100)
    allow_installments: bool = False
    total_installments: int = Field(default=1, ge=1)

    @field_validator("features")
    @classmethod
    def _strip_features(cls, v: list[str]) -> list[str]:
        return [f.strip() for f in v if f and f.strip()]


class PlanUpdate(PlanInput):
    is_active: bool = True


class LaunchSeasonRequest(BaseModel):
    season_name: str = Field(min_length=2)
    registration_close_date: datetime | None = None  # None = open indefinitely
    plans: list[PlanInput] = Field(min_length=1)


class SeasonUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2)
    registration_close_date: datetime | None = None

    @field_validator("registration_close_date", mode="before")
    @classmethod
    def _blank_means_open(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class PlanResponse(BaseModel):
    id: uuid.UUID
    batch_id: uuid.UUID
    title: str
    description: str | None
    price: int
    features: list[str] | None
    validity_days: int | None
    allow_installments: bool
    total_installments: int
    full_payment_discount: int
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class BatchResponse(BaseModel):
    id: uuid.UUID
    name: str
    status: BatchStatus
    start_date: datetime | None
    registration_close_date: datetime | None
    end_date: datetime | None
    plans: list[PlanResponse] = []

    class Config:
        from_attributes = True


# ── Orders / Payments ──────────────────────────────────────

class CreateOrderRequest(BaseModel):
    plan_id: uuid.UUID
    payment_mode: PaymentMode = PaymentMode.FULL


class OrderResponse(BaseModel):
    success: bool = True
    id: str
    amount: int
    currency: str
    description: str
    key_id: str | None = None


class VerifyPaymentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    plan_id: uuid.UUID = Field(alias="planId")


class PaymentResponse(BaseModel):
    id: uuid.UUID
    subscription_id: uuid.UUID | None
    plan_id: uuid.UUID | None = None
    razorpay_order_id: str
    razorpay_payment_id: str | None
    amount: int
    status: PaymentStatus
    installment_index: int
    created_at: datetime

    class Config:
        from_attributes = True


# ── Subscriptions ──────────────────────────────────────────

class SubscriptionResponse(BaseModel):
    id: uuid.UUID
    plan_id: uuid.UUID
    status: SubscriptionStatus
    start_date: datetime | None
    end_date: datetime | None
    total_amount: int
    amount_paid: int
    installments_paid: int
    plan: PlanResponse | None = None

    class Config:
        from_attributes = True


class AccessResponse(BaseModel):
    status: str
    has_access: bool
    message: str | None = None
    next_due_date: datetime | None = None
    days_until_due: int | None = None
    subscription: SubscriptionResponse | None = None


class SubscriptionOverview(BaseModel):
    access: AccessResponse
    payments: list[PaymentResponse]


class ActionResponse(BaseModel):
    success: bool = True
    message: str | None = None


class CancellationResponse(ActionResponse):
    status: SubscriptionStatus
