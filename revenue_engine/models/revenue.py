"""Monthly revenue bucket model."""

from datetime import date
from enum import Enum

from sqlalchemy import BigInteger, CheckConstraint, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from revenue_engine.db.base import Base, TimestampMixin


class CalculationSource(str, Enum):
    """How a bucket's totals were produced."""

    TEMPLATE = "template"  # Zero-filled month, never persisted
    INVOICE_EVENT = "invoice_event"
    RECALCULATION = "recalculation"


class RevenueBucket(Base, TimestampMixin):
    """Per-month revenue summary kept in step with invoice events.

    One row per calendar month; ``period`` is always the first day of the month.
    """

    __tablename__ = "revenues"
    __table_args__ = (
        CheckConstraint(
            "total_amount = total_paid_amount + total_pending_amount",
            name="ck_revenues_total_matches_buckets",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    period: Mapped[date] = mapped_column(Date, unique=True, index=True, nullable=False)

    invoice_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Amounts in minor currency units
    total_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_paid_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    total_pending_amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)

    calculation_source: Mapped[str] = mapped_column(
        String(32),
        default=CalculationSource.INVOICE_EVENT.value,
        nullable=False,
        comment="template, invoice_event or recalculation",
    )

    def __repr__(self) -> str:
        return (
            f"<RevenueBucket(period={self.period:%Y-%m}, invoices={self.invoice_count}, "
            f"total={self.total_amount})>"
        )
