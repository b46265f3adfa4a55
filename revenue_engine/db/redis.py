"""Shared Redis client for the processed-event registry and health checks."""

import asyncio
import logging

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError, TimeoutError

from revenue_engine.core.config import settings

logger = logging.getLogger(__name__)

_client: Redis | None = None
_lock = asyncio.Lock()


async def get_redis() -> Redis:
    """Return the process-wide client, connecting on first use.

    Raises:
        redis.exceptions.RedisError: If the first ping fails
    """
    global _client

    async with _lock:
        if _client is None:
            client = Redis.from_url(
                str(settings.REDIS_URL),
                decode_responses=True,
                max_connections=20,
                socket_timeout=2.0,
                socket_connect_timeout=2.0,
                retry=Retry(ExponentialBackoff(), retries=2),
                retry_on_error=[ConnectionError, TimeoutError],
            )
            try:
                await client.ping()
            except Exception:
                logger.exception("Failed to initialize Redis connection")
                await client.aclose()
                raise
            _client = client
            logger.info("Redis client connected")

    return _client


async def close_redis() -> None:
    """Close the client and its pool, if one was opened."""
    global _client

    if _client is None:
        return
    try:
        await _client.aclose()
        logger.info("Redis client closed")
    finally:
        _client = None
