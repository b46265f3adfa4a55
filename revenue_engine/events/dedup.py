"""Processed-event registry backed by Redis.

An event is claimed with ``SET NX EX`` before it is applied, so a redelivered
event with the same eventId is skipped instead of being counted twice.
"""

from typing import Any

import structlog
from redis.exceptions import RedisError

from revenue_engine.core.config import settings

logger = structlog.get_logger()


class ProcessedEventRegistry:
    """Short-TTL set of event ids that have been (or are being) applied."""

    KEY_PREFIX = "revenue:event:"

    def __init__(self, redis: Any, ttl_seconds: int | None = None):
        """Initialize the registry.

        Args:
            redis: Async Redis client
            ttl_seconds: How long a claimed id is remembered
        """
        self.redis = redis
        self.ttl_seconds = ttl_seconds or settings.EVENT_DEDUP_TTL_SECONDS

    def _key(self, event_id: str) -> str:
        return f"{self.KEY_PREFIX}{event_id}"

    async def claim(self, event_id: str) -> bool:
        """Mark an event as being processed.

        Returns:
            False if the event was already claimed; True otherwise, including
            when Redis is unavailable (the event is then processed undeduplicated)
        """
        try:
            claimed = await self.redis.set(self._key(event_id), "1", nx=True, ex=self.ttl_seconds)
        except RedisError:
            logger.warning("Event dedup unavailable, processing without claim", event_id=event_id, exc_info=True)
            return True
        return bool(claimed)

    async def release(self, event_id: str) -> None:
        """Forget a claim so a redelivery of the event can be applied."""
        try:
            await self.redis.delete(self._key(event_id))
        except RedisError:
            logger.exception("Failed to release event claim", event_id=event_id)

    async def is_processed(self, event_id: str) -> bool:
        try:
            return bool(await self.redis.exists(self._key(event_id)))
        except RedisError:
            logger.exception("Failed to check event claim", event_id=event_id)
            return False
