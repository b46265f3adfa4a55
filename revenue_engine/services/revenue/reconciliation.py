"""Reconciliation of revenue buckets with invoice lifecycle events.

Each event is turned into a plan of per-period mutations, which are then
written through ``RevenueStore.upsert_revenue`` in a single transaction.
"""

from dataclasses import dataclass, field
from typing import Any

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from revenue_engine.core.errors import RevenueValidationError
from revenue_engine.models.revenue import RevenueBucket
from revenue_engine.schemas.invoice import InvoiceLifecycleEvent, InvoiceOperation, InvoiceSnapshot
from revenue_engine.services.revenue.changes import ChangeKind, InvoiceChange, detect_change
from revenue_engine.services.revenue.eligibility import is_eligible
from revenue_engine.services.revenue.mutations import RevenueMutation
from revenue_engine.services.revenue.period import Period, to_period
from revenue_engine.services.revenue.store import RevenueStore, database_errors

logger = structlog.get_logger()


@dataclass(frozen=True)
class PlannedMutation:
    """One bucket write derived from an event.

    When ``requires_existing`` is set and the bucket is missing, ``fallback``
    is applied instead, or the write is skipped if there is no fallback.
    """

    period: Period
    mutation: RevenueMutation
    reason: str
    requires_existing: bool = False
    fallback: RevenueMutation | None = None


@dataclass
class ReconciliationResult:
    """Outcome of reconciling one event."""

    event_id: str
    operation: InvoiceOperation
    change: ChangeKind | None = None
    buckets: list[RevenueBucket] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def applied(self) -> bool:
        return bool(self.buckets)


def _contribute(invoice: InvoiceSnapshot, reason: str) -> PlannedMutation:
    return PlannedMutation(
        period=to_period(invoice.date),
        mutation=RevenueMutation.contribution(invoice),
        reason=reason,
    )


def _remove(invoice: InvoiceSnapshot, reason: str) -> PlannedMutation:
    return PlannedMutation(
        period=to_period(invoice.date),
        mutation=RevenueMutation.removal(invoice),
        reason=reason,
        requires_existing=True,
    )


def plan_created(invoice: InvoiceSnapshot) -> list[PlannedMutation]:
    """An eligible new invoice adds one contribution; anything else is a no-op."""
    if not is_eligible(invoice.status):
        return []
    return [_contribute(invoice, "created")]


def plan_deleted(invoice: InvoiceSnapshot) -> list[PlannedMutation]:
    """A deleted eligible invoice is removed from its bucket."""
    if not is_eligible(invoice.status):
        return []
    return [_remove(invoice, "deleted")]


def plan_updated(change: InvoiceChange) -> list[PlannedMutation]:
    """Mutations for an update, by transition kind."""
    previous, current = change.previous, change.current

    if change.kind is ChangeKind.BECAME_ELIGIBLE:
        return [_contribute(current, change.kind.value)]

    if change.kind is ChangeKind.BECAME_INELIGIBLE:
        return [_remove(previous, change.kind.value)]

    if change.kind is ChangeKind.PERIOD_MOVED:
        return [
            _remove(previous, change.kind.value),
            _contribute(current, change.kind.value),
        ]

    if change.kind is ChangeKind.BUCKET_MOVED:
        return [
            PlannedMutation(
                period=to_period(current.date),
                mutation=RevenueMutation.removal(previous) + RevenueMutation.contribution(current),
                reason=change.kind.value,
                requires_existing=True,
                fallback=RevenueMutation.contribution(current),
            )
        ]

    if change.kind is ChangeKind.AMOUNT_CHANGED:
        return [
            PlannedMutation(
                period=to_period(current.date),
                mutation=RevenueMutation.amount_diff(current.status, change.amount_delta),
                reason=change.kind.value,
                requires_existing=True,
                fallback=RevenueMutation.contribution(current),
            )
        ]

    return []


class RevenueReconciliationService:
    """Applies invoice lifecycle events to the monthly revenue buckets."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        strict_integrity: bool | None = None,
    ):
        """Initialize the service.

        Args:
            session_factory: Factory for one session per handled event
            strict_integrity: Passed to RevenueStore
        """
        self.session_factory = session_factory
        self.strict_integrity = strict_integrity
        self.logger = logger.bind(component="revenue_reconciliation")

    def plan(self, event: InvoiceLifecycleEvent) -> tuple[ChangeKind | None, list[PlannedMutation]]:
        """Work out the bucket writes an event requires, without touching the store."""
        if event.operation is InvoiceOperation.CREATED:
            return None, plan_created(event.invoice)

        previous = event.previous_invoice
        if previous is None:
            raise RevenueValidationError(
                f"previousInvoice is required for {event.operation.value} events",
                event_id=event.event_id,
            )

        if event.operation is InvoiceOperation.DELETED:
            return None, plan_deleted(event.invoice)

        change = detect_change(previous, event.invoice)
        return change.kind, plan_updated(change)

    async def handle(self, event: InvoiceLifecycleEvent) -> ReconciliationResult:
        """Reconcile one event.

        Raises:
            RevenueDatabaseError: If the store cannot be read or written
            RevenueIntegrityError: In strict mode, if a bucket would go negative
        """
        log = self.logger.bind(
            event_id=event.event_id,
            invoice_id=event.invoice.id,
            operation=event.operation.value,
        )

        change, planned = self.plan(event)
        result = ReconciliationResult(
            event_id=event.event_id, operation=event.operation, change=change
        )

        if not planned:
            log.info(
                "No revenue effect",
                change=change.value if change else None,
                status=event.invoice.status.value,
            )
            return result

        # Commits run outside the store wrappers
        async with database_errors("reconcile"):
            await self._apply(planned, result, log)

        return result

    async def _apply(
        self, planned: list[PlannedMutation], result: ReconciliationResult, log: Any
    ) -> None:
        async with self.session_factory() as session:
            store = RevenueStore(session, strict_integrity=self.strict_integrity)

            # Buckets are never deleted here, so an existence check made before
            # the write transaction stays true
            writes: list[tuple[Period, RevenueMutation, str]] = []
            async with session.begin():
                for step in planned:
                    mutation: RevenueMutation | None = step.mutation
                    if step.requires_existing and await store.find_by_period(step.period) is None:
                        mutation = step.fallback
                        if mutation is None:
                            log.warning(
                                "Revenue bucket missing, skipping",
                                period=step.period.key,
                                reason=step.reason,
                            )
                            result.skipped.append(step.period.key)
                            continue
                        log.warning(
                            "Revenue bucket missing, applying as new contribution",
                            period=step.period.key,
                            reason=step.reason,
                        )
                    if mutation.is_empty:
                        continue
                    writes.append((step.period, mutation, step.reason))

            if not writes:
                return

            async with session.begin():
                for period, mutation, reason in writes:
                    bucket = await store.upsert_revenue(period, mutation)
                    result.buckets.append(bucket)
                    log.info(
                        "Revenue bucket updated",
                        period=period.key,
                        reason=reason,
                        invoice_count=bucket.invoice_count,
                        total_amount=bucket.total_amount,
                        total_paid_amount=bucket.total_paid_amount,
                        total_pending_amount=bucket.total_pending_amount,
                    )
