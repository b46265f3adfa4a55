"""Read-side revenue reporting over stored buckets."""

from collections.abc import Sequence
from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from revenue_engine.models.revenue import CalculationSource, RevenueBucket
from revenue_engine.schemas.revenue import MonthlyRevenueResponse, RevenueStatisticsResponse
from revenue_engine.services.revenue.period import Period, period_range, to_period
from revenue_engine.services.revenue.store import RevenueStore

MONTH_NAMES = [
    "", "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]

ROLLING_MONTHS = 12


def rolling_year(today: date) -> tuple[Period, Period]:
    """The 12 periods ending with the month of ``today``."""
    end = to_period(today)
    return end.shift(-(ROLLING_MONTHS - 1)), end


def to_monthly(bucket: RevenueBucket) -> MonthlyRevenueResponse:
    period = to_period(bucket.period)
    return MonthlyRevenueResponse(
        period=period.key,
        year=period.year,
        month=period.month,
        month_name=MONTH_NAMES[period.month],
        invoice_count=bucket.invoice_count,
        total_amount=bucket.total_amount,
        total_paid_amount=bucket.total_paid_amount,
        total_pending_amount=bucket.total_pending_amount,
        calculation_source=bucket.calculation_source,
    )


def template_month(period: Period) -> MonthlyRevenueResponse:
    """Zero-valued entry for a month with no stored bucket."""
    return MonthlyRevenueResponse(
        period=period.key,
        year=period.year,
        month=period.month,
        month_name=MONTH_NAMES[period.month],
        invoice_count=0,
        total_amount=0,
        total_paid_amount=0,
        total_pending_amount=0,
        calculation_source=CalculationSource.TEMPLATE.value,
    )


async def list_revenue(session: AsyncSession, start: Period, end: Period) -> list[MonthlyRevenueResponse]:
    """One entry per month from ``start`` to ``end``, zero-filling gaps."""
    months = list(period_range(start, end))
    stored = {
        to_period(bucket.period): bucket
        for bucket in await RevenueStore(session).list_between(start, end)
    }
    return [
        to_monthly(stored[period]) if period in stored else template_month(period)
        for period in months
    ]


def compute_statistics(months: Sequence[MonthlyRevenueResponse]) -> RevenueStatisticsResponse:
    """Total plus average/max/min over the months that have revenue.

    The average is rounded half up to whole minor units.
    """
    values = [m.total_amount for m in months if m.total_amount > 0]
    invoice_count = sum(m.invoice_count for m in months)

    if not values:
        return RevenueStatisticsResponse(
            total=0,
            average=0,
            maximum=0,
            minimum=0,
            months_with_data=0,
            invoice_count=invoice_count,
        )

    total = sum(values)
    return RevenueStatisticsResponse(
        total=total,
        average=(total + len(values) // 2) // len(values),
        maximum=max(values),
        minimum=min(values),
        months_with_data=len(values),
        invoice_count=invoice_count,
    )
