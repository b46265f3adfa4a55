"""SQLAlchemy models."""

from revenue_engine.models.revenue import CalculationSource, RevenueBucket

__all__ = [
    "CalculationSource",
    "RevenueBucket",
]
