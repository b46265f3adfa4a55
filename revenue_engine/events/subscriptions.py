"""Wiring of revenue subscribers onto the event bus."""

import structlog

from revenue_engine.events.bus import EventBus, InvoiceTopic
from revenue_engine.events.dispatcher import RevenueEventDispatcher

logger = structlog.get_logger()


def register_revenue_subscribers(bus: EventBus, dispatcher: RevenueEventDispatcher, seal: bool = True) -> None:
    """Subscribe the dispatcher to every invoice topic.

    Args:
        bus: Event bus created at startup
        dispatcher: Running revenue dispatcher
        seal: Freeze the bus afterwards so no further subscriptions are accepted
    """
    for topic in InvoiceTopic:

        async def _enqueue(payload: object, topic: InvoiceTopic = topic) -> None:
            await dispatcher.submit(topic, payload)

        bus.subscribe(topic, _enqueue)

    if seal:
        bus.seal()

    logger.info("Revenue subscribers registered", topics=[t.value for t in InvoiceTopic], sealed=bus.sealed)
