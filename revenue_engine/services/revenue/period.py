"""Calendar-month period identity.

All date-to-month normalization goes through ``to_period``; a Period always
refers to the first day of its month and compares by (year, month) only.
"""

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date, datetime

from dateutil.parser import isoparse
from dateutil.relativedelta import relativedelta

from revenue_engine.core.errors import RevenueValidationError


@dataclass(frozen=True, order=True)
class Period:
    """A calendar month."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise RevenueValidationError(f"Invalid month: {self.month}", month=self.month)
        if not 1 <= self.year <= 9999:
            raise RevenueValidationError(f"Invalid year: {self.year}", year=self.year)

    @property
    def first_day(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def key(self) -> str:
        return period_key(self)

    def shift(self, months: int) -> "Period":
        """Return the period ``months`` calendar months away (negative goes back)."""
        shifted = self.first_day + relativedelta(months=months)
        return Period(shifted.year, shifted.month)

    def __str__(self) -> str:
        return self.key


def to_period(value: "Period | date | datetime | str") -> Period:
    """Normalize a date, datetime or ISO string to its Period.

    Accepted strings: ``YYYY-MM``, ``YYYY-MM-DD`` and ISO-8601 datetimes.

    Raises:
        RevenueValidationError: If the value cannot be parsed
    """
    if isinstance(value, Period):
        return value

    # datetime is a subclass of date, so this covers both
    if isinstance(value, date):
        return Period(value.year, value.month)

    if isinstance(value, str):
        text = value.strip()
        if not text:
            raise RevenueValidationError("Empty period value")
        try:
            parsed = isoparse(text)
        except (ValueError, OverflowError) as e:
            raise RevenueValidationError(f"Unparsable period value: {value!r}", value=value) from e
        return Period(parsed.year, parsed.month)

    raise RevenueValidationError(
        f"Unsupported period value type: {type(value).__name__}", value=repr(value)
    )


def period_key(period: Period) -> str:
    """Canonical ``YYYY-MM`` key for a period."""
    return f"{period.year:04d}-{period.month:02d}"


def period_range(start: Period, end: Period) -> Iterator[Period]:
    """Yield every period from ``start`` to ``end`` inclusive, oldest first."""
    if end < start:
        raise RevenueValidationError(
            "Range end precedes start", start=start.key, end=end.key
        )

    current = start
    while current <= end:
        yield current
        current = current.shift(1)
