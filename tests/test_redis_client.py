"""
Tests for the shared Redis client used by the notification relay.

get_redis is imported at module level: the autouse fake_redis fixture
replaces the module attribute, not this reference.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from payhook.core import redis_client
from payhook.core.redis_client import close_redis, get_redis, mask_redis_url


@pytest.fixture(autouse=True)
def reset_client():
    redis_client._redis_client = None
    yield
    redis_client._redis_client = None


def _client(ping_error: Exception | None = None) -> MagicMock:
    client = MagicMock()
    client.ping = AsyncMock(side_effect=ping_error)
    client.aclose = AsyncMock()
    return client


@pytest.mark.unit
class TestMaskRedisUrl:

    def test_password_hidden(self) -> None:
        assert mask_redis_url("redis://:s3cret@cache:6379/0") == "redis://:****@cache:6379/0"

    def test_url_without_password_unchanged(self) -> None:
        assert mask_redis_url("redis://localhost:6379/0") == "redis://localhost:6379/0"


@pytest.mark.unit
class TestGetRedis:

    @pytest.mark.asyncio
    async def test_client_is_shared(self) -> None:
        client = _client()
        with patch.object(redis_client.aioredis, "from_url", return_value=client) as from_url:
            assert await get_redis() is client
            assert await get_redis() is client

        from_url.assert_called_once()
        assert from_url.call_args.kwargs["socket_timeout"] == redis_client.settings.REDIS_SOCKET_TIMEOUT_SECONDS
        client.ping.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_ping_is_not_cached(self) -> None:
        broken = _client(ping_error=ConnectionError("refused"))
        healthy = _client()

        with patch.object(redis_client.aioredis, "from_url", side_effect=[broken, healthy]):
            with pytest.raises(ConnectionError):
                await get_redis()
            broken.aclose.assert_awaited_once()

            assert await get_redis() is healthy

    @pytest.mark.asyncio
    async def test_close_redis(self) -> None:
        client = _client()
        with patch.object(redis_client.aioredis, "from_url", return_value=client):
            await get_redis()

        await close_redis()

        client.aclose.assert_awaited_once()
        assert redis_client._redis_client is None
        # closing twice is a no-op
        await close_redis()
