"""Error taxonomy for the revenue engine.

- RevenueValidationError: malformed period or invoice payload. Raised by pure
  functions and never caught internally; the dispatcher drops the event.
- RevenueDatabaseError: a store read or write failed. The dispatcher decides
  whether to retry.
- RevenueIntegrityError: a bucket invariant would be violated (e.g. a negative
  total). Only raised in strict mode; otherwise the store clamps and logs.
"""

from typing import Any


class RevenueError(Exception):
    """Base class for revenue engine errors."""

    category = "revenue"

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class RevenueValidationError(RevenueError, ValueError):
    """Malformed period or invoice payload."""

    category = "validation"


class RevenueDatabaseError(RevenueError):
    """Store read/write failure."""

    category = "database"


class RevenueIntegrityError(RevenueError):
    """A bucket invariant would be violated."""

    category = "integrity"
