"""
Rate Limiter — shared, Redis-backed per-user leases.

Order creation is serialized per user across every server instance:
  - One lease key per user: ratelimit:create-order:<user_id>
  - SET NX with a millisecond TTL (default 2 s)
  - A rejected attempt does not extend the running lease
"""

import logging

import redis.asyncio as aioredis

from config import settings
from services.exceptions import RateLimitError

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None

CREATE_ORDER_SCOPE = "create-order"


async def get_redis() -> aioredis.Redis:
    """Singleton Redis connection."""
    global _redis
    if _redis is None:
        _redis = aioredis.from_url(settings.REDIS_URL, decode_responses=True)
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


async def acquire_lease(scope: str, user_id: str, window_ms: int) -> bool:
    """
    Try to take the user's lease for `scope`.

    Returns:
        True if no lease was held (and one is now held for `window_ms`),
        False if another call from the same user is still inside the window.
    """
    r = await get_redis()
    key = f"ratelimit:{scope}:{user_id}"
    acquired = await r.set(key, "1", nx=True, px=window_ms)
    return bool(acquired)


async def enforce_order_rate_limit(user_id: str) -> None:
    """Reject a create-order call made within the cooldown of the previous one."""
    if not await acquire_lease(CREATE_ORDER_SCOPE, user_id, settings.ORDER_RATE_LIMIT_MS):
        logger.info("Create-order throttled for user %s", user_id)
        raise RateLimitError("Please wait a moment before trying again.")
