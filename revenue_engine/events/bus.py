"""In-process event bus for invoice lifecycle topics.

The bus is created once at startup and passed to publishers and to the
subscription registration; there is no module-level instance.
"""

from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import structlog

from revenue_engine.schemas.invoice import InvoiceOperation

logger = structlog.get_logger()

EventHandler = Callable[[Any], Awaitable[Any]]


class InvoiceTopic(str, Enum):
    """Invoice lifecycle topics."""

    CREATED = "invoice.created"
    UPDATED = "invoice.updated"
    DELETED = "invoice.deleted"

    @property
    def operation(self) -> InvoiceOperation:
        return _TOPIC_OPERATIONS[self]

    @classmethod
    def for_operation(cls, operation: InvoiceOperation | str) -> "InvoiceTopic":
        return _OPERATION_TOPICS[InvoiceOperation(operation)]


_TOPIC_OPERATIONS = {
    InvoiceTopic.CREATED: InvoiceOperation.CREATED,
    InvoiceTopic.UPDATED: InvoiceOperation.UPDATED,
    InvoiceTopic.DELETED: InvoiceOperation.DELETED,
}
_OPERATION_TOPICS = {operation: topic for topic, operation in _TOPIC_OPERATIONS.items()}


class EventBus:
    """Topic -> handlers registry, sealed once wiring is complete."""

    def __init__(self) -> None:
        self._handlers: dict[InvoiceTopic, list[EventHandler]] = {topic: [] for topic in InvoiceTopic}
        self._sealed = False
        self.logger = logger.bind(component="event_bus")

    @property
    def sealed(self) -> bool:
        return self._sealed

    def subscribe(self, topic: InvoiceTopic, handler: EventHandler) -> None:
        """Register a handler for a topic.

        Raises:
            RuntimeError: If the registry has already been sealed
        """
        if self._sealed:
            raise RuntimeError(f"Cannot subscribe to {topic.value}: event bus is sealed")
        self._handlers[InvoiceTopic(topic)].append(handler)
        self.logger.debug("Handler subscribed", topic=topic.value)

    def seal(self) -> None:
        """Freeze the registry; later subscribe() calls fail."""
        self._sealed = True

    def handlers(self, topic: InvoiceTopic) -> tuple[EventHandler, ...]:
        return tuple(self._handlers[InvoiceTopic(topic)])

    async def publish(self, topic: InvoiceTopic, payload: Any) -> int:
        """Deliver a payload to every handler of ``topic``.

        A failing handler is logged and does not stop delivery to the others.

        Returns:
            Number of handlers that accepted the payload
        """
        topic = InvoiceTopic(topic)
        handlers = self._handlers[topic]
        if not handlers:
            self.logger.warning("No handlers for topic", topic=topic.value)
            return 0

        delivered = 0
        for handler in handlers:
            try:
                await handler(payload)
                delivered += 1
            except Exception:
                self.logger.exception("Event handler failed", topic=topic.value)
        return delivered
