"""Which invoice statuses count toward revenue, and into which sub-bucket."""

from enum import Enum

from revenue_engine.schemas.invoice import InvoiceStatus


class Bucket(str, Enum):
    """Revenue sub-bucket."""

    PAID = "paid"
    PENDING = "pending"


# Only statuses listed here contribute to totals and invoice counts
_STATUS_BUCKETS: dict[InvoiceStatus, Bucket] = {
    InvoiceStatus.PAID: Bucket.PAID,
    InvoiceStatus.PENDING: Bucket.PENDING,
}


def bucket_for(status: InvoiceStatus | str) -> Bucket | None:
    """Sub-bucket an invoice with this status contributes to, or None."""
    try:
        normalized = InvoiceStatus(status)
    except ValueError:
        return None
    return _STATUS_BUCKETS.get(normalized)


def is_eligible(status: InvoiceStatus | str) -> bool:
    """Whether an invoice with this status counts toward revenue."""
    return bucket_for(status) is not None
