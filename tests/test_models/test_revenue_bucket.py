"""Tests for RevenueBucket model."""

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from revenue_engine.models.revenue import CalculationSource, RevenueBucket


class TestRevenueBucketModel:
    """Test RevenueBucket creation and constraints."""

    @pytest.mark.asyncio
    async def test_create_bucket_defaults(self, test_session: AsyncSession) -> None:
        bucket = RevenueBucket(period=date(2024, 3, 1))
        test_session.add(bucket)
        await test_session.commit()
        await test_session.refresh(bucket)

        assert bucket.id is not None
        assert bucket.invoice_count == 0
        assert bucket.total_amount == 0
        assert bucket.calculation_source == CalculationSource.INVOICE_EVENT.value
        assert bucket.created_at is not None
        assert bucket.updated_at is not None
        assert "2024-03" in repr(bucket)

    @pytest.mark.asyncio
    async def test_period_is_unique(self, test_session: AsyncSession) -> None:
        test_session.add(RevenueBucket(period=date(2024, 3, 1)))
        await test_session.commit()

        test_session.add(RevenueBucket(period=date(2024, 3, 1)))
        with pytest.raises(IntegrityError):
            await test_session.commit()

    @pytest.mark.asyncio
    async def test_total_must_match_sub_buckets(self, test_session: AsyncSession) -> None:
        test_session.add(
            RevenueBucket(
                period=date(2024, 3, 1),
                total_amount=999,
                total_paid_amount=100,
                total_pending_amount=200,
            )
        )
        with pytest.raises(IntegrityError):
            await test_session.commit()

    @pytest.mark.asyncio
    async def test_query_by_period(self, test_session: AsyncSession) -> None:
        test_session.add(
            RevenueBucket(
                period=date(2024, 4, 1),
                invoice_count=1,
                total_amount=300,
                total_paid_amount=300,
                total_pending_amount=0,
            )
        )
        await test_session.commit()

        result = await test_session.execute(
            select(RevenueBucket).where(RevenueBucket.period == date(2024, 4, 1))
        )
        bucket = result.scalar_one()
        assert bucket.total_paid_amount == 300
