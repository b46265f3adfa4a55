"""Main FastAPI application entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from revenue_engine.api import health, revenue
from revenue_engine.core.config import settings
from revenue_engine.core.logging import configure_logging
from revenue_engine.db.redis import close_redis, get_redis
from revenue_engine.db.session import AsyncSessionLocal, engine
from revenue_engine.events.bus import EventBus
from revenue_engine.events.dedup import ProcessedEventRegistry
from revenue_engine.events.dispatcher import RevenueEventDispatcher
from revenue_engine.events.subscriptions import register_revenue_subscribers
from revenue_engine.middleware.request_tracing import RequestTracingMiddleware
from revenue_engine.services.revenue.reconciliation import RevenueReconciliationService

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    logger.info("Starting application", app_name=settings.APP_NAME)

    registry: ProcessedEventRegistry | None = None
    if settings.EVENT_DEDUP_ENABLED:
        try:
            # Fatal if fails: without dedup a redelivery would be double-counted
            registry = ProcessedEventRegistry(await get_redis())
            logger.info("Redis connection established")
        except Exception:
            logger.exception("Failed to initialize Redis - application cannot start")
            raise

    # Initialize Sentry if configured (non-fatal)
    if settings.SENTRY_DSN:
        try:
            import sentry_sdk

            sentry_sdk.init(
                dsn=settings.SENTRY_DSN,
                environment=settings.SENTRY_ENVIRONMENT,
                traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
            )
            logger.info("Sentry initialized")
        except Exception:
            logger.exception("Failed to initialize Sentry - continuing without error tracking")

    bus = EventBus()
    dispatcher = RevenueEventDispatcher(
        RevenueReconciliationService(AsyncSessionLocal),
        registry=registry,
    )
    await dispatcher.start()
    register_revenue_subscribers(bus, dispatcher)

    app.state.event_bus = bus
    app.state.dispatcher = dispatcher

    yield

    # Shutdown
    logger.info("Shutting down application")

    try:
        await dispatcher.stop()
    except Exception:
        logger.exception("Error stopping revenue dispatcher")

    try:
        await close_redis()
        logger.info("Redis connection closed")
    except Exception:
        logger.exception("Error closing Redis connection")

    # Dispose database engine and close all connections
    try:
        await engine.dispose()
        logger.info("Database connections closed")
    except Exception:
        logger.exception("Error closing database connections")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

app.add_middleware(RequestTracingMiddleware)

app.include_router(health.router, tags=["health"])
app.include_router(revenue.router)


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "revenue_engine.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.RELOAD,
    )
