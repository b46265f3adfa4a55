"""Paid/pending sub-total arithmetic."""

from typing import NamedTuple

from revenue_engine.schemas.invoice import InvoiceStatus
from revenue_engine.services.revenue.eligibility import Bucket, bucket_for


class BucketTotals(NamedTuple):
    """Paid and pending sub-totals in minor currency units."""

    paid: int = 0
    pending: int = 0

    @property
    def total(self) -> int:
        return self.paid + self.pending


ZERO = BucketTotals()


def apply_delta(
    current: BucketTotals, status: InvoiceStatus | str, amount_delta: int
) -> BucketTotals:
    """Add a signed amount to the sub-bucket selected by ``status``.

    Returns ``current`` unchanged when the status is not revenue-eligible.
    Additions, removals (negated amount) and amount diffs all go through here.
    """
    bucket = bucket_for(status)
    if bucket is Bucket.PAID:
        return current._replace(paid=current.paid + amount_delta)
    if bucket is Bucket.PENDING:
        return current._replace(pending=current.pending + amount_delta)
    return current
