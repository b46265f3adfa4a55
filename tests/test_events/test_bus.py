"""Tests for the in-process event bus and publishers."""

from collections.abc import Callable
from typing import Any

import pytest

from revenue_engine.events.bus import EventBus, InvoiceTopic
from revenue_engine.events.publishers import build_invoice_event, publish_invoice_event
from revenue_engine.schemas.invoice import InvoiceLifecycleEvent, InvoiceOperation, InvoiceSnapshot


class TestInvoiceTopic:
    """Tests for topic/operation mapping."""

    @pytest.mark.parametrize(
        ("operation", "topic"),
        [
            ("created", InvoiceTopic.CREATED),
            ("updated", InvoiceTopic.UPDATED),
            (InvoiceOperation.DELETED, InvoiceTopic.DELETED),
        ],
    )
    def test_for_operation(self, operation: str, topic: InvoiceTopic) -> None:
        assert InvoiceTopic.for_operation(operation) is topic
        assert topic.operation is InvoiceOperation(operation)

    def test_unknown_operation_raises(self) -> None:
        with pytest.raises(ValueError):
            InvoiceTopic.for_operation("archived")


class TestEventBus:
    """Tests for EventBus."""

    @pytest.mark.asyncio
    async def test_publish_reaches_only_topic_handlers(self) -> None:
        bus = EventBus()
        created: list[Any] = []
        deleted: list[Any] = []

        async def on_created(payload: Any) -> None:
            created.append(payload)

        async def on_deleted(payload: Any) -> None:
            deleted.append(payload)

        bus.subscribe(InvoiceTopic.CREATED, on_created)
        bus.subscribe(InvoiceTopic.DELETED, on_deleted)

        delivered = await bus.publish(InvoiceTopic.CREATED, {"n": 1})

        assert delivered == 1
        assert created == [{"n": 1}]
        assert deleted == []

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_block_others(self) -> None:
        bus = EventBus()
        received: list[Any] = []

        async def broken(payload: Any) -> None:
            raise RuntimeError("boom")

        async def working(payload: Any) -> None:
            received.append(payload)

        bus.subscribe(InvoiceTopic.UPDATED, broken)
        bus.subscribe(InvoiceTopic.UPDATED, working)

        assert await bus.publish(InvoiceTopic.UPDATED, "payload") == 1
        assert received == ["payload"]

    @pytest.mark.asyncio
    async def test_publish_without_handlers(self) -> None:
        assert await EventBus().publish(InvoiceTopic.CREATED, {}) == 0

    def test_subscribe_after_seal_raises(self) -> None:
        bus = EventBus()

        async def handler(payload: Any) -> None:
            return None

        bus.subscribe(InvoiceTopic.CREATED, handler)
        bus.seal()

        assert bus.sealed
        with pytest.raises(RuntimeError):
            bus.subscribe(InvoiceTopic.CREATED, handler)
        assert bus.handlers(InvoiceTopic.CREATED) == (handler,)


class TestPublishers:
    """Tests for invoice event publishing helpers."""

    def test_build_generates_id_and_timestamp(self, make_invoice: Callable[..., InvoiceSnapshot]) -> None:
        first = build_invoice_event("created", make_invoice())
        second = build_invoice_event("created", make_invoice())

        assert first.event_id != second.event_id
        assert first.timestamp.tzinfo is not None
        assert first.operation is InvoiceOperation.CREATED

    @pytest.mark.asyncio
    async def test_publish_routes_by_operation(self, make_invoice: Callable[..., InvoiceSnapshot]) -> None:
        bus = EventBus()
        received: list[InvoiceLifecycleEvent] = []

        async def on_updated(payload: InvoiceLifecycleEvent) -> None:
            received.append(payload)

        bus.subscribe(InvoiceTopic.UPDATED, on_updated)

        event = await publish_invoice_event(
            bus, "updated", make_invoice(amount=5), make_invoice(amount=4), event_id="evt-42"
        )

        assert received == [event]
        assert event.event_id == "evt-42"
