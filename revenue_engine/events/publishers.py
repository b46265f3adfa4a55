"""Helpers for emitting invoice lifecycle events."""

import uuid
from datetime import UTC, datetime

from revenue_engine.events.bus import EventBus, InvoiceTopic
from revenue_engine.schemas.invoice import InvoiceLifecycleEvent, InvoiceOperation, InvoiceSnapshot


def build_invoice_event(
    operation: InvoiceOperation | str,
    invoice: InvoiceSnapshot,
    previous_invoice: InvoiceSnapshot | None = None,
    event_id: str | None = None,
    timestamp: datetime | None = None,
) -> InvoiceLifecycleEvent:
    """Build a lifecycle event, generating the id and timestamp when omitted."""
    return InvoiceLifecycleEvent(
        event_id=event_id or str(uuid.uuid4()),
        timestamp=timestamp or datetime.now(UTC),
        operation=InvoiceOperation(operation),
        invoice=invoice,
        previous_invoice=previous_invoice,
    )


async def publish_invoice_event(
    bus: EventBus,
    operation: InvoiceOperation | str,
    invoice: InvoiceSnapshot,
    previous_invoice: InvoiceSnapshot | None = None,
    event_id: str | None = None,
    timestamp: datetime | None = None,
) -> InvoiceLifecycleEvent:
    """Publish an invoice event on the topic matching its operation.

    Returns:
        The published event
    """
    event = build_invoice_event(operation, invoice, previous_invoice, event_id, timestamp)
    await bus.publish(InvoiceTopic.for_operation(event.operation), event)
    return event
