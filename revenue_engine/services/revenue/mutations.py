"""Signed bucket mutations and absolute bucket patches."""

from dataclasses import dataclass

from revenue_engine.models.revenue import CalculationSource
from revenue_engine.schemas.invoice import InvoiceSnapshot, InvoiceStatus
from revenue_engine.services.revenue.buckets import ZERO, BucketTotals, apply_delta


@dataclass(frozen=True)
class RevenueMutation:
    """A signed change to one period's bucket."""

    invoice_count_delta: int = 0
    paid_delta: int = 0
    pending_delta: int = 0

    @property
    def total_delta(self) -> int:
        return self.paid_delta + self.pending_delta

    @property
    def is_empty(self) -> bool:
        return not (self.invoice_count_delta or self.paid_delta or self.pending_delta)

    def __add__(self, other: "RevenueMutation") -> "RevenueMutation":
        return RevenueMutation(
            invoice_count_delta=self.invoice_count_delta + other.invoice_count_delta,
            paid_delta=self.paid_delta + other.paid_delta,
            pending_delta=self.pending_delta + other.pending_delta,
        )

    @classmethod
    def from_buckets(cls, buckets: BucketTotals, invoice_count_delta: int = 0) -> "RevenueMutation":
        return cls(
            invoice_count_delta=invoice_count_delta,
            paid_delta=buckets.paid,
            pending_delta=buckets.pending,
        )

    @classmethod
    def contribution(cls, invoice: InvoiceSnapshot) -> "RevenueMutation":
        """An eligible invoice entering a bucket with its full amount."""
        return cls.from_buckets(apply_delta(ZERO, invoice.status, invoice.amount), 1)

    @classmethod
    def removal(cls, invoice: InvoiceSnapshot) -> "RevenueMutation":
        """An eligible invoice leaving its bucket with its full amount."""
        return cls.from_buckets(apply_delta(ZERO, invoice.status, -invoice.amount), -1)

    @classmethod
    def amount_diff(cls, status: InvoiceStatus, delta: int) -> "RevenueMutation":
        """Amount change on an invoice that stays in the same bucket."""
        return cls.from_buckets(apply_delta(ZERO, status, delta))


@dataclass(frozen=True)
class RevenuePatch:
    """Absolute bucket values, written as-is."""

    invoice_count: int
    total_paid_amount: int
    total_pending_amount: int
    calculation_source: CalculationSource = CalculationSource.RECALCULATION

    @property
    def total_amount(self) -> int:
        return self.total_paid_amount + self.total_pending_amount

    @classmethod
    def from_buckets(
        cls,
        buckets: BucketTotals,
        invoice_count: int,
        calculation_source: CalculationSource = CalculationSource.RECALCULATION,
    ) -> "RevenuePatch":
        return cls(
            invoice_count=invoice_count,
            total_paid_amount=buckets.paid,
            total_pending_amount=buckets.pending,
            calculation_source=calculation_source,
        )
