"""
Redis Client - shared async client for the notification relay.

The relay publishes right after a payment commit, so connection and socket
timeouts are short (REDIS_SOCKET_TIMEOUT_SECONDS): an unreachable Redis
costs the webhook path a couple of seconds, never a hang.
"""
import asyncio
from urllib.parse import urlparse

import redis.asyncio as aioredis

from payhook.core.config import settings
from payhook.core.logging import get_logger

logger = get_logger(__name__)

_redis_client: aioredis.Redis | None = None
_init_lock = asyncio.Lock()


def mask_redis_url(url: str) -> str:
    """redis://:secret@host:6379/0 -> redis://:****@host:6379/0"""
    try:
        parsed = urlparse(url)
        if parsed.password:
            return url.replace(f":{parsed.password}@", ":****@")
        return url
    except ValueError:
        return "redis://****"


async def get_redis() -> aioredis.Redis:
    """
    Return the shared client, connecting on first use.

    A client whose first ping fails is closed and not kept, so the next
    call tries again.
    """
    global _redis_client
    if _redis_client is not None:
        return _redis_client

    async with _init_lock:
        if _redis_client is not None:
            return _redis_client

        timeout = settings.REDIS_SOCKET_TIMEOUT_SECONDS
        client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=timeout,
            socket_timeout=timeout,
        )
        try:
            await client.ping()
        except Exception:
            logger.warning(
                "Redis unreachable",
                extra_data={"url": mask_redis_url(settings.REDIS_URL)},
            )
            await client.aclose()
            raise

        _redis_client = client
        logger.info(
            "Redis client initialized",
            extra_data={"url": mask_redis_url(settings.REDIS_URL)},
        )
    return _redis_client


async def close_redis() -> None:
    """Close the shared client (application shutdown, end of a Celery task)"""
    global _redis_client
    if _redis_client is not None:
        client, _redis_client = _redis_client, None
        await client.aclose()
        logger.info("Redis connection closed")
