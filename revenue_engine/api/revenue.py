"""Revenue reporting and invoice event ingestion endpoints."""

from datetime import UTC, datetime
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from revenue_engine.core.config import settings
from revenue_engine.core.errors import RevenueDatabaseError, RevenueValidationError
from revenue_engine.db.session import get_db
from revenue_engine.events.bus import EventBus, InvoiceTopic
from revenue_engine.events.dispatcher import RevenueEventDispatcher
from revenue_engine.schemas.revenue import (
    EventAcceptedResponse,
    MonthlyRevenueResponse,
    RevenueRangeResponse,
)
from revenue_engine.services.revenue.period import Period, to_period
from revenue_engine.services.revenue.reporting import (
    compute_statistics,
    list_revenue,
    rolling_year,
    to_monthly,
)
from revenue_engine.services.revenue.store import RevenueStore

router = APIRouter(prefix=f"{settings.API_V1_PREFIX}/revenue", tags=["revenue"])
logger = structlog.get_logger()


def get_event_bus(request: Request) -> EventBus:
    """Event bus built by the application lifespan."""
    bus: EventBus | None = getattr(request.app.state, "event_bus", None)
    if bus is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Event bus not initialized"
        )
    return bus


def get_dispatcher(request: Request) -> RevenueEventDispatcher | None:
    """Revenue dispatcher built by the application lifespan, if any."""
    return getattr(request.app.state, "dispatcher", None)


def _parse_period(value: str, name: str) -> Period:
    try:
        return to_period(value)
    except RevenueValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid {name}: {e.message}",
        ) from e


def _store_unavailable(e: RevenueDatabaseError) -> HTTPException:
    logger.error("Revenue store unavailable", error=e.message, **e.details)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Revenue store unavailable"
    )


@router.get("", response_model=RevenueRangeResponse)
async def get_revenue_range(
    db: AsyncSession = Depends(get_db),
    start: str | None = Query(None, description="First month, YYYY-MM"),
    end: str | None = Query(None, description="Last month, YYYY-MM"),
) -> RevenueRangeResponse:
    """Get monthly revenue for a range of months.

    Defaults to the rolling year ending with the current month. Months with
    no recorded revenue are returned zero-filled.
    """
    default_start, default_end = rolling_year(datetime.now(UTC).date())
    start_period = _parse_period(start, "start") if start else default_start
    end_period = _parse_period(end, "end") if end else default_end

    if end_period < start_period:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="end must not precede start",
        )

    try:
        months = await list_revenue(db, start_period, end_period)
    except RevenueDatabaseError as e:
        raise _store_unavailable(e) from e

    return RevenueRangeResponse(
        start=start_period.key,
        end=end_period.key,
        months=months,
        statistics=compute_statistics(months),
    )


@router.get("/{period}", response_model=MonthlyRevenueResponse)
async def get_revenue_for_period(
    period: str,
    db: AsyncSession = Depends(get_db),
) -> MonthlyRevenueResponse:
    """Get the stored revenue bucket for one month."""
    target = _parse_period(period, "period")

    try:
        bucket = await RevenueStore(db).find_by_period(target)
    except RevenueDatabaseError as e:
        raise _store_unavailable(e) from e

    if bucket is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No revenue recorded for {target.key}",
        )
    return to_monthly(bucket)


@router.post(
    "/events",
    response_model=EventAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def ingest_invoice_event(
    bus: Annotated[EventBus, Depends(get_event_bus)],
    payload: dict[str, Any] = Body(...),
) -> EventAcceptedResponse:
    """Publish a raw invoice lifecycle event to the bus.

    Only the ``operation`` field is checked here; full validation happens in
    the dispatcher, which drops malformed events.
    """
    try:
        topic = InvoiceTopic.for_operation(payload.get("operation", ""))
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown operation: {payload.get('operation')!r}",
        ) from e

    event_id = payload.get("eventId") or payload.get("event_id")
    await bus.publish(topic, payload)
    logger.info("Invoice event accepted", topic=topic.value, event_id=event_id)

    return EventAcceptedResponse(
        status="accepted",
        topic=topic.value,
        event_id=str(event_id) if event_id is not None else None,
    )
