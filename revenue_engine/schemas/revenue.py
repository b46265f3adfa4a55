"""Revenue reporting response models."""

from pydantic import BaseModel


class MonthlyRevenueResponse(BaseModel):
    """One month of revenue."""

    period: str  # YYYY-MM
    year: int
    month: int
    month_name: str
    invoice_count: int
    total_amount: int
    total_paid_amount: int
    total_pending_amount: int
    calculation_source: str


class RevenueStatisticsResponse(BaseModel):
    """Aggregate statistics over a range of months."""

    total: int
    average: int
    maximum: int
    minimum: int
    months_with_data: int
    invoice_count: int


class RevenueRangeResponse(BaseModel):
    """Months in a range plus their statistics."""

    start: str
    end: str
    months: list[MonthlyRevenueResponse]
    statistics: RevenueStatisticsResponse


class EventAcceptedResponse(BaseModel):
    """Response for an ingested invoice event."""

    status: str
    topic: str
    event_id: str | None = None
