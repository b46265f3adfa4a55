"""Invoice lifecycle event payloads.

Events arrive in the dashboard's camelCase wire format (``eventId``,
``previousInvoice``); snake_case field names are accepted as well.
"""

from datetime import date, datetime
from enum import Enum
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class InvoiceStatus(str, Enum):
    """Invoice status."""

    PENDING = "pending"
    PAID = "paid"
    DRAFT = "draft"
    VOID = "void"


class InvoiceOperation(str, Enum):
    """Lifecycle operation carried by an event."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class InvoiceSnapshot(_WireModel):
    """Immutable invoice state carried by an event."""

    id: str = Field(min_length=1)
    customer_id: str = Field(min_length=1)
    amount: int = Field(ge=0, description="Amount in minor currency units")
    status: InvoiceStatus
    date: date


class InvoiceLifecycleEvent(_WireModel):
    """A created/updated/deleted invoice event."""

    event_id: str = Field(min_length=1)
    timestamp: datetime
    operation: InvoiceOperation
    invoice: InvoiceSnapshot
    previous_invoice: InvoiceSnapshot | None = None

    @model_validator(mode="after")
    def require_previous_invoice(self) -> Self:
        """Updated and deleted events must carry the prior invoice state."""
        if self.operation is not InvoiceOperation.CREATED and self.previous_invoice is None:
            raise ValueError(f"previousInvoice is required for {self.operation.value} events")
        if self.previous_invoice is not None and self.previous_invoice.id != self.invoice.id:
            raise ValueError("previousInvoice must describe the same invoice")
        return self
