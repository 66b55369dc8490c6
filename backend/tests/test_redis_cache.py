"""
Unit tests for RedisCache locks and JSON cache.
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from portfolio_engine.core.exceptions import CacheError
from portfolio_engine.database.redis import RedisCache


@pytest.fixture
def mock_client():
    client = AsyncMock()
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.eval = AsyncMock(return_value=1)
    return client


@pytest.fixture
def cache(mock_client):
    redis_cache = RedisCache()
    redis_cache.client = mock_client
    return redis_cache


class TestLocks:
    """Test owner-token locks"""

    @pytest.mark.asyncio
    async def test_acquire_uses_set_nx_ex(self, cache, mock_client):
        token = await cache.acquire_lock("lock:holding:p:f", lock_ttl_seconds=30)

        assert token
        mock_client.set.assert_called_once_with(
            "lock:holding:p:f", token, nx=True, ex=30
        )

    @pytest.mark.asyncio
    async def test_acquire_held_lock(self, cache, mock_client):
        mock_client.set.return_value = None

        assert await cache.acquire_lock("lock:holding:p:f") is None

    @pytest.mark.asyncio
    async def test_acquire_when_redis_down(self, cache, mock_client):
        mock_client.set.side_effect = RedisConnectionError("refused")

        with pytest.raises(CacheError):
            await cache.acquire_lock("lock:holding:p:f")

    @pytest.mark.asyncio
    async def test_release_checks_owner_token(self, cache, mock_client):
        released = await cache.release_lock("lock:holding:p:f", "token123")

        assert released is True
        args = mock_client.eval.call_args.args
        assert args[1:] == (1, "lock:holding:p:f", "token123")

    @pytest.mark.asyncio
    async def test_release_expired_lock(self, cache, mock_client):
        mock_client.eval.return_value = 0

        assert await cache.release_lock("lock:holding:p:f", "token123") is False


class TestJsonCache:
    """Test JSON get/set"""

    @pytest.mark.asyncio
    async def test_set_serializes_with_ttl(self, cache, mock_client):
        await cache.set("funds:list:all", [{"fund_id": "fund_gold"}], ttl_seconds=300)

        mock_client.set.assert_called_once_with(
            "funds:list:all", '[{"fund_id": "fund_gold"}]', ex=300
        )

    @pytest.mark.asyncio
    async def test_get_deserializes(self, cache, mock_client):
        mock_client.get.return_value = '[{"fund_id": "fund_gold"}]'

        assert await cache.get("funds:list:all") == [{"fund_id": "fund_gold"}]

    @pytest.mark.asyncio
    async def test_get_failure_is_a_miss(self, cache, mock_client):
        mock_client.get.side_effect = RedisConnectionError("refused")

        assert await cache.get("funds:list:all") is None

    @pytest.mark.asyncio
    async def test_requires_connection(self):
        with pytest.raises(CacheError):
            await RedisCache().get("funds:list:all")
