"""Full recompute of a period's bucket from its invoices (batch path only)."""

from collections.abc import Iterable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from revenue_engine.models.revenue import CalculationSource, RevenueBucket
from revenue_engine.schemas.invoice import InvoiceSnapshot
from revenue_engine.services.revenue.buckets import ZERO, apply_delta
from revenue_engine.services.revenue.eligibility import is_eligible
from revenue_engine.services.revenue.mutations import RevenuePatch
from revenue_engine.services.revenue.period import Period, to_period
from revenue_engine.services.revenue.store import RevenueStore

logger = structlog.get_logger()


def rebuild_totals(period: Period, invoices: Iterable[InvoiceSnapshot]) -> RevenuePatch:
    """Totals of the currently-eligible invoices dated in ``period``.

    Invoices from other months are ignored, so a full scan can be passed in.
    """
    buckets = ZERO
    count = 0
    for invoice in invoices:
        if to_period(invoice.date) != period or not is_eligible(invoice.status):
            continue
        buckets = apply_delta(buckets, invoice.status, invoice.amount)
        count += 1

    return RevenuePatch.from_buckets(buckets, count, CalculationSource.RECALCULATION)


async def recalculate_period(
    session: AsyncSession,
    period: Period,
    invoices: Iterable[InvoiceSnapshot],
) -> RevenueBucket:
    """Replace a period's bucket with totals rebuilt from ``invoices``.

    The caller owns the transaction.
    """
    patch = rebuild_totals(period, invoices)
    bucket = await RevenueStore(session).upsert_by_period(period, patch)

    logger.info(
        "revenue_recalculated",
        period=period.key,
        invoice_count=patch.invoice_count,
        total_amount=patch.total_amount,
    )
    return bucket
