"""Tests for the shared order rate limiter (mocked Redis)."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "api"))

import pytest
from unittest.mock import AsyncMock, patch

from services.exceptions import RateLimitError


@pytest.mark.asyncio
async def test_lease_set_with_nx_and_ttl():
    """Lease should be a single SET NX PX on a per-user key."""
    with patch("services.rate_limiter.get_redis") as mock_get_redis:
        mock_conn = AsyncMock()
        mock_conn.set.return_value = True
        mock_get_redis.return_value = mock_conn

        from services.rate_limiter import acquire_lease
        assert await acquire_lease("create-order", "user-1", 2000) is True

        mock_conn.set.assert_called_once_with("ratelimit:create-order:user-1", "1", nx=True, px=2000)


@pytest.mark.asyncio
async def test_lease_held():
    with patch("services.rate_limiter.get_redis") as mock_get_redis:
        mock_conn = AsyncMock()
        mock_conn.set.return_value = None
        mock_get_redis.return_value = mock_conn

        from services.rate_limiter import acquire_lease
        assert await acquire_lease("create-order", "user-1", 2000) is False


@pytest.mark.asyncio
async def test_order_rate_limit_allows_first_call():
    with patch("services.rate_limiter.get_redis") as mock_get_redis:
        mock_conn = AsyncMock()
        mock_conn.set.return_value = True
        mock_get_redis.return_value = mock_conn

        from services.rate_limiter import enforce_order_rate_limit
        await enforce_order_rate_limit("user-1")


@pytest.mark.asyncio
async def test_order_rate_limit_rejects_within_window():
    with patch("services.rate_limiter.get_redis") as mock_get_redis:
        mock_conn = AsyncMock()
        mock_conn.set.return_value = None
        mock_get_redis.return_value = mock_conn

        from services.rate_limiter import enforce_order_rate_limit
        with pytest.raises(RateLimitError) as exc:
            await enforce_order_rate_limit("user-1")

        assert exc.value.status_code == 429
        assert exc.value.message == "Please wait a moment before trying again."
