"""Pytest configuration and fixtures for revenue engine tests."""

from collections.abc import AsyncGenerator, Callable
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from revenue_engine.api.revenue import get_dispatcher, get_event_bus
from revenue_engine.db.base import Base
from revenue_engine.db.session import build_engine, build_session_factory, get_db
from revenue_engine.events.bus import EventBus
from revenue_engine.events.dedup import ProcessedEventRegistry
from revenue_engine.events.dispatcher import RevenueEventDispatcher
from revenue_engine.events.subscriptions import register_revenue_subscribers
from revenue_engine.main import app
from revenue_engine.models.revenue import RevenueBucket  # noqa: F401
from revenue_engine.schemas.invoice import (
    InvoiceLifecycleEvent,
    InvoiceOperation,
    InvoiceSnapshot,
    InvoiceStatus,
)
from revenue_engine.services.revenue.reconciliation import RevenueReconciliationService


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed SQLite engine so concurrent sessions share one database."""
    engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'revenue.db'}",
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_session_factory(test_engine)


@pytest_asyncio.fixture(scope="function")
async def test_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_redis() -> AsyncGenerator[Any, None]:
    """Create fake Redis client for testing."""
    redis_client = fakeredis.FakeRedis(decode_responses=True)
    yield redis_client
    await redis_client.flushall()
    await redis_client.aclose()


@pytest.fixture
def reconciler(session_factory: async_sessionmaker[AsyncSession]) -> RevenueReconciliationService:
    return RevenueReconciliationService(session_factory, strict_integrity=False)


@pytest.fixture
def registry(test_redis: Any) -> ProcessedEventRegistry:
    return ProcessedEventRegistry(test_redis, ttl_seconds=60)


@pytest_asyncio.fixture(scope="function")
async def dispatcher(
    reconciler: RevenueReconciliationService,
    registry: ProcessedEventRegistry,
) -> AsyncGenerator[RevenueEventDispatcher, None]:
    """Running dispatcher with two lanes and no retry delay."""
    worker = RevenueEventDispatcher(
        reconciler,
        registry=registry,
        workers=2,
        queue_size=100,
        max_retries=2,
        base_delay=0,
    )
    await worker.start()
    yield worker
    await worker.stop()


@pytest.fixture
def event_bus(dispatcher: RevenueEventDispatcher) -> EventBus:
    bus = EventBus()
    register_revenue_subscribers(bus, dispatcher)
    return bus


@pytest_asyncio.fixture(scope="function")
async def test_client(
    session_factory: async_sessionmaker[AsyncSession],
    event_bus: EventBus,
    dispatcher: RevenueEventDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client with dependency overrides."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session
            await session.commit()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_bus] = lambda: event_bus
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)  # type: ignore[arg-type]
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_invoice() -> Callable[..., InvoiceSnapshot]:
    """Factory fixture for invoice snapshots."""

    def _make_invoice(**kwargs: Any) -> InvoiceSnapshot:
        data: dict[str, Any] = {
            "id": "inv-1",
            "customer_id": "cust-1",
            "amount": 10000,
            "status": InvoiceStatus.PENDING,
            "date": date(2024, 3, 15),
        }
        data.update(kwargs)
        return InvoiceSnapshot(**data)

    return _make_invoice


@pytest.fixture
def make_event() -> Callable[..., InvoiceLifecycleEvent]:
    """Factory fixture for lifecycle events; event ids default to a counter."""
    counter = iter(range(1, 1_000_000))

    def _make_event(
        operation: InvoiceOperation | str,
        invoice: InvoiceSnapshot,
        previous_invoice: InvoiceSnapshot | None = None,
        event_id: str | None = None,
    ) -> InvoiceLifecycleEvent:
        return InvoiceLifecycleEvent(
            event_id=event_id or f"evt-{next(counter)}",
            timestamp=datetime(2024, 3, 15, 12, 0, tzinfo=UTC),
            operation=InvoiceOperation(operation),
            invoice=invoice,
            previous_invoice=previous_invoice,
        )

    return _make_event


@pytest.fixture
def wire_event() -> dict[str, Any]:
    """A created event in the camelCase wire format."""
    return {
        "eventId": "evt-wire-1",
        "timestamp": "2024-03-15T12:00:00Z",
        "operation": "created",
        "invoice": {
            "id": "inv-wire",
            "customerId": "cust-1",
            "amount": 10000,
            "status": "pending",
            "date": "2024-03-15",
        },
        "previousInvoice": None,
    }
