"""Classification of invoice updates by their revenue effect.

State machine (eligibility per ``bucket_for``):

    ineligible -> ineligible            NONE
    ineligible -> eligible              BECAME_ELIGIBLE
    eligible   -> ineligible            BECAME_INELIGIBLE
    eligible   -> eligible, new month   PERIOD_MOVED
    eligible   -> eligible, new bucket  BUCKET_MOVED
    eligible   -> eligible, new amount  AMOUNT_CHANGED
    otherwise                           NONE
"""

from dataclasses import dataclass
from enum import Enum

from revenue_engine.schemas.invoice import InvoiceSnapshot
from revenue_engine.services.revenue.eligibility import bucket_for
from revenue_engine.services.revenue.period import to_period


class ChangeKind(str, Enum):
    """Revenue-relevant transition between two invoice states."""

    NONE = "none"
    AMOUNT_CHANGED = "amount_changed"
    BECAME_ELIGIBLE = "became_eligible"
    BECAME_INELIGIBLE = "became_ineligible"
    BUCKET_MOVED = "bucket_moved"
    PERIOD_MOVED = "period_moved"


@dataclass(frozen=True)
class InvoiceChange:
    """Result of comparing the previous and current state of one invoice."""

    kind: ChangeKind
    previous: InvoiceSnapshot
    current: InvoiceSnapshot

    @property
    def amount_delta(self) -> int:
        return self.current.amount - self.previous.amount

    @property
    def status_changed(self) -> bool:
        return self.previous.status != self.current.status

    @property
    def changes_invoice_count(self) -> bool:
        """Only eligibility-class transitions move the invoice count."""
        return self.kind in (ChangeKind.BECAME_ELIGIBLE, ChangeKind.BECAME_INELIGIBLE)


def detect_change(previous: InvoiceSnapshot, current: InvoiceSnapshot) -> InvoiceChange:
    """Classify an update of one invoice."""
    previous_bucket = bucket_for(previous.status)
    current_bucket = bucket_for(current.status)

    if previous_bucket is None and current_bucket is None:
        kind = ChangeKind.NONE
    elif previous_bucket is None:
        kind = ChangeKind.BECAME_ELIGIBLE
    elif current_bucket is None:
        kind = ChangeKind.BECAME_INELIGIBLE
    elif to_period(previous.date) != to_period(current.date):
        kind = ChangeKind.PERIOD_MOVED
    elif previous_bucket is not current_bucket:
        kind = ChangeKind.BUCKET_MOVED
    elif previous.amount != current.amount:
        kind = ChangeKind.AMOUNT_CHANGED
    else:
        kind = ChangeKind.NONE

    return InvoiceChange(kind=kind, previous=previous, current=current)
