"""Revenue bucket persistence.

``upsert_revenue`` is the single write path for event-driven changes. It runs
one ``INSERT ... ON CONFLICT (period) DO UPDATE`` statement that adds the
mutation to the stored totals inside the database, so concurrent events for
the same month cannot lose each other's contribution.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from revenue_engine.core.config import settings
from revenue_engine.core.errors import RevenueDatabaseError, RevenueIntegrityError
from revenue_engine.models.revenue import CalculationSource, RevenueBucket
from revenue_engine.services.revenue.mutations import RevenueMutation, RevenuePatch
from revenue_engine.services.revenue.period import Period

logger = structlog.get_logger()

_COUNTERS = ("invoice_count", "total_paid_amount", "total_pending_amount")

_DIALECT_INSERTS: dict[str, Any] = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@asynccontextmanager
async def database_errors(operation: str, period: Period | None = None) -> AsyncIterator[None]:
    """Re-raise SQLAlchemy failures as RevenueDatabaseError."""
    try:
        yield
    except SQLAlchemyError as e:
        raise RevenueDatabaseError(
            f"Revenue store {operation} failed",
            store_operation=operation,
            period=period.key if period else None,
            error_type=type(e).__name__,
        ) from e


class RevenueStore:
    """Read and upsert RevenueBucket rows keyed by period."""

    def __init__(self, session: AsyncSession, strict_integrity: bool | None = None):
        """Initialize the store.

        Args:
            session: Database session; the caller owns the transaction
            strict_integrity: Raise instead of clamping negative totals
                (defaults to settings.REVENUE_STRICT_INTEGRITY)
        """
        self.session = session
        self.strict_integrity = (
            settings.REVENUE_STRICT_INTEGRITY if strict_integrity is None else strict_integrity
        )

    def _insert(self) -> Any:
        dialect = self.session.get_bind().dialect.name
        try:
            return _DIALECT_INSERTS[dialect]
        except KeyError:
            raise RevenueDatabaseError(
                f"Atomic upsert is not supported on {dialect}", dialect=dialect
            ) from None

    async def find_by_period(self, period: Period) -> RevenueBucket | None:
        """Get the bucket for a period, or None if nothing was recorded yet."""
        async with database_errors("find_by_period", period):
            result = await self.session.execute(
                select(RevenueBucket).where(RevenueBucket.period == period.first_day)
            )
            return result.scalar_one_or_none()

    async def list_between(self, start: Period, end: Period) -> list[RevenueBucket]:
        """Stored buckets from ``start`` to ``end`` inclusive, oldest first."""
        async with database_errors("list_between"):
            result = await self.session.execute(
                select(RevenueBucket)
                .where(
                    RevenueBucket.period >= start.first_day,
                    RevenueBucket.period <= end.first_day,
                )
                .order_by(RevenueBucket.period)
            )
            return list(result.scalars().all())

    async def upsert_revenue(
        self,
        period: Period,
        mutation: RevenueMutation,
        source: CalculationSource = CalculationSource.INVOICE_EVENT,
    ) -> RevenueBucket:
        """Atomically add a mutation to the period's bucket, creating it if absent."""
        insert = self._insert()
        now = datetime.now(UTC)

        stmt = insert(RevenueBucket).values(
            period=period.first_day,
            invoice_count=mutation.invoice_count_delta,
            total_amount=mutation.total_delta,
            total_paid_amount=mutation.paid_delta,
            total_pending_amount=mutation.pending_delta,
            calculation_source=source.value,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["period"],
            set_={
                "invoice_count": RevenueBucket.invoice_count + stmt.excluded.invoice_count,
                "total_amount": RevenueBucket.total_amount + stmt.excluded.total_amount,
                "total_paid_amount": RevenueBucket.total_paid_amount
                + stmt.excluded.total_paid_amount,
                "total_pending_amount": RevenueBucket.total_pending_amount
                + stmt.excluded.total_pending_amount,
                "calculation_source": stmt.excluded.calculation_source,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(RevenueBucket)

        async with database_errors("upsert_revenue", period):
            result = await self.session.execute(
                stmt, execution_options={"populate_existing": True}
            )
            bucket = result.scalar_one()
            await self._enforce_non_negative(bucket, period, mutation)

        return bucket

    async def upsert_by_period(self, period: Period, patch: RevenuePatch) -> RevenueBucket:
        """Overwrite the period's bucket with absolute values, creating it if absent."""
        values = {
            "invoice_count": patch.invoice_count,
            "total_paid_amount": patch.total_paid_amount,
            "total_pending_amount": patch.total_pending_amount,
        }
        negative = {field: value for field, value in values.items() if value < 0}
        if negative:
            raise RevenueIntegrityError(
                "Revenue patch contains negative values", period=period.key, **negative
            )

        insert = self._insert()
        now = datetime.now(UTC)

        stmt = insert(RevenueBucket).values(
            period=period.first_day,
            total_amount=patch.total_amount,
            calculation_source=patch.calculation_source.value,
            created_at=now,
            updated_at=now,
            **values,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["period"],
            set_={
                "invoice_count": stmt.excluded.invoice_count,
                "total_amount": stmt.excluded.total_amount,
                "total_paid_amount": stmt.excluded.total_paid_amount,
                "total_pending_amount": stmt.excluded.total_pending_amount,
                "calculation_source": stmt.excluded.calculation_source,
                "updated_at": stmt.excluded.updated_at,
            },
        ).returning(RevenueBucket)

        async with database_errors("upsert_by_period", period):
            result = await self.session.execute(
                stmt, execution_options={"populate_existing": True}
            )
            return result.scalar_one()

    async def _enforce_non_negative(
        self, bucket: RevenueBucket, period: Period, mutation: RevenueMutation
    ) -> None:
        """Clamp-and-flag (or raise, in strict mode) when a counter went negative.

        The row is still locked by the upsert, so the correction cannot race.
        """
        negative = {field: getattr(bucket, field) for field in _COUNTERS if getattr(bucket, field) < 0}
        if not negative:
            return

        details = {
            "period": period.key,
            "invoice_count_delta": mutation.invoice_count_delta,
            "paid_delta": mutation.paid_delta,
            "pending_delta": mutation.pending_delta,
            **negative,
        }

        if self.strict_integrity:
            raise RevenueIntegrityError("Revenue bucket would become negative", **details)

        logger.error("revenue_integrity_violation", action="clamped_to_zero", **details)

        bucket.invoice_count = max(bucket.invoice_count, 0)
        bucket.total_paid_amount = max(bucket.total_paid_amount, 0)
        bucket.total_pending_amount = max(bucket.total_pending_amount, 0)
        bucket.total_amount = bucket.total_paid_amount + bucket.total_pending_amount
        await self.session.flush()
