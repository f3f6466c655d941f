import os
from functools import lru_cache

from pydantic import BaseModel


class Settings(BaseModel):
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "postgresql+asyncpg://orbit:orbit@db:5432/orbit",
    )
    SQL_ECHO: bool = os.getenv("SQL_ECHO", "false").lower() == "true"
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://redis:6379/0")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Razorpay
    RAZORPAY_KEY_ID: str | None = os.getenv("RAZORPAY_KEY_ID")
    RAZORPAY_KEY_SECRET: str | None = os.getenv("RAZORPAY_KEY_SECRET")
    RAZORPAY_WEBHOOK_SECRET: str | None = os.getenv("RAZORPAY_WEBHOOK_SECRET")
    RAZORPAY_API_BASE: str = os.getenv("RAZORPAY_API_BASE", "https://api.razorpay.com/v1")
    RAZORPAY_TIMEOUT_SECONDS: float = float(os.getenv("RAZORPAY_TIMEOUT_SECONDS", "15"))
    CURRENCY: str = os.getenv("CURRENCY", "INR")

    # Session tokens issued by the identity provider
    JWT_SECRET: str = os.getenv("JWT_SECRET", "changeme")
    JWT_ALGORITHM: str = os.getenv("JWT_ALGORITHM", "HS256")

    # Commerce policy
    ORDER_RATE_LIMIT_MS: int = int(os.getenv("ORDER_RATE_LIMIT_MS", "2000"))
    CANCELLATION_WINDOW_DAYS: int = int(os.getenv("CANCELLATION_WINDOW_DAYS", "7"))
    GRACE_PERIOD_HOURS: int = int(os.getenv("GRACE_PERIOD_HOURS", "24"))
    DUE_SOON_DAYS: int = int(os.getenv("DUE_SOON_DAYS", "30"))


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
