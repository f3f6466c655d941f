"""Shared fixtures: in-memory database, seeded season, mocked gateway."""

import os
import sys

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "test_key_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "test_webhook_secret"
os.environ["JWT_SECRET"] = "test-jwt-secret"

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import hashlib
import hmac
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from db.database import Base, utcnow
from models.batch import Batch
from models.enums import BatchStatus
from models.plan import Plan
from services.razorpay import RazorpayClient


def sign(secret: str, message: bytes | str) -> str:
    if isinstance(message, str):
        message = message.encode()
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def season(session_factory):
    """An ACTIVE season with a one-shot plan and a 4-installment plan (₹10,000 each)."""
    async with session_factory() as session:
        batch = Batch(
            name="Season 1",
            status=BatchStatus.ACTIVE,
            start_date=utcnow() - timedelta(days=1),
        )
        session.add(batch)
        await session.flush()

        full_plan = Plan(
            batch_id=batch.id,
            title="Orbit Pass",
            price=1_000_000,
            validity_days=365,
            features=["Live sessions"],
            allow_installments=False,
            total_installments=1,
            full_payment_discount=10,
            is_active=True,
        )
        installment_plan = Plan(
            batch_id=batch.id,
            title="Orbit Flex",
            price=1_000_000,
            validity_days=365,
            features=[],
            allow_installments=True,
            total_installments=4,
            full_payment_discount=10,
            is_active=True,
        )
        session.add_all([full_plan, installment_plan])
        await session.commit()

    return SimpleNamespace(batch=batch, full_plan=full_plan, installment_plan=installment_plan)


@pytest.fixture
def gateway():
    gw = AsyncMock(spec=RazorpayClient)
    gw.create_order.return_value = {"id": "order_test_1", "amount": 0, "currency": "INR"}
    gw.refund_payment.return_value = {"id": "rfnd_test_1", "status": "processed"}
    return gw
