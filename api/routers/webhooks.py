"""
Razorpay webhook endpoint.

Razorpay retries anything that is not 2xx, so every verified event is
acknowledged, including ones we do not handle. A bad signature is a 400;
only a genuine internal failure becomes a 500.
"""

import logging

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from db.database import get_db
from services.exceptions import BillingError
from services.ledger import handle_webhook

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(default=None),
    db: AsyncSession = Depends(get_db),
):
    # The signature covers the exact bytes Razorpay sent
    raw_body = await request.body()
    try:
        event = await handle_webhook(db, raw_body, x_razorpay_signature)
    except BillingError:
        raise
    except Exception:
        logger.exception("Webhook processing failed")
        raise

    logger.debug("Webhook acknowledged: %s", event)
    return {"status": "ok"}
