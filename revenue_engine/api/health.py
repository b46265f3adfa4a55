"""Health check endpoints."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from revenue_engine.api.revenue import get_dispatcher
from revenue_engine.core.config import settings
from revenue_engine.db.redis import get_redis
from revenue_engine.db.session import get_db
from revenue_engine.events.dispatcher import RevenueEventDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Basic health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
    }


@router.get("/health/db")
async def health_check_db(response: Response, db: AsyncSession = Depends(get_db)) -> dict[str, str]:
    """Database health check endpoint."""
    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        return {"status": "healthy", "database": "connected"}
    except Exception as e:
        logger.exception("Database health check failed")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "database": str(e)}


@router.get("/health/redis")
async def health_check_redis(response: Response) -> dict[str, str]:
    """Redis health check endpoint."""
    try:
        redis = await get_redis()
        await redis.ping()
        return {"status": "healthy", "redis": "connected"}
    except Exception as e:
        logger.exception("Redis health check failed")
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "redis": str(e)}


@router.get("/health/dispatcher")
async def health_check_dispatcher(
    response: Response,
    dispatcher: RevenueEventDispatcher | None = Depends(get_dispatcher),
) -> dict[str, Any]:
    """Revenue dispatcher status and counters."""
    if dispatcher is None or not dispatcher.running:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {"status": "unhealthy", "dispatcher": "stopped"}

    return {
        "status": "healthy",
        "dispatcher": "running",
        "workers": dispatcher.workers,
        "pending": dispatcher.pending,
        "stats": dispatcher.stats.as_dict(),
    }
