"""
On The Orbit — Commerce API
Seasons, plans, Razorpay payments, subscriptions and access checks.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import settings
from db.database import engine, init_db
from routers import admin, payments, plans, subscriptions, webhooks
from services.exceptions import BillingError
from services.rate_limiter import close_redis

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    await init_db()
    logger.info("Orbit commerce API starting...")
    yield
    await close_redis()
    await engine.dispose()
    logger.info("Orbit commerce API shut down.")


app = FastAPI(
    title="On The Orbit Commerce API",
    description="Subscription lifecycle and payment access backend",
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ───────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Errors ─────────────────────────────────────────────────
@app.exception_handler(BillingError)
async def billing_error_handler(request: Request, exc: BillingError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid input")
    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "error": f"{field}: {message}" if field else message,
            "code": "VALIDATION_ERROR",
        },
    )


# ── Routers ────────────────────────────────────────────────
app.include_router(plans.router, prefix="/api/plans", tags=["Plans"])
app.include_router(payments.router, prefix="/api/payment", tags=["Payments"])
app.include_router(webhooks.router, prefix="/api/payment", tags=["Razorpay Webhooks"])
app.include_router(subscriptions.router, prefix="/api/subscription", tags=["Subscriptions"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "Orbit commerce API"}


@app.get("/health/db")
async def health_db():
    """Verify the DB connection."""
    from sqlalchemy import text
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as e:
        logger.error("DB health check failed: %s", e)
        return {"status": "error", "detail": str(e)}
