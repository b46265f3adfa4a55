"""Revenue event dispatcher.

This background worker:
1. Receives invoice lifecycle payloads from the event bus
2. Routes each to one of N ordered lanes by invoice id, so events for the same
   invoice are applied in delivery order while different invoices run in parallel
3. Validates, deduplicates and hands the event to the reconciliation service
4. Retries database failures with exponential backoff, then dead-letters (logs)
"""

import asyncio
import contextlib
import zlib
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any

import structlog
from pydantic import ValidationError

from revenue_engine.core.config import settings
from revenue_engine.core.errors import (
    RevenueDatabaseError,
    RevenueIntegrityError,
    RevenueValidationError,
)
from revenue_engine.events.bus import InvoiceTopic
from revenue_engine.events.dedup import ProcessedEventRegistry
from revenue_engine.schemas.invoice import InvoiceLifecycleEvent
from revenue_engine.services.revenue.reconciliation import RevenueReconciliationService

logger = structlog.get_logger()


class DispatchOutcome(str, Enum):
    """What happened to one dispatched event."""

    APPLIED = "applied"
    NO_EFFECT = "no_effect"
    DUPLICATE = "duplicate"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass
class DispatcherStats:
    """Counters exposed by the dispatcher health endpoint."""

    received: int = 0
    applied: int = 0
    no_effect: int = 0
    duplicate: int = 0
    rejected: int = 0
    failed: int = 0
    retries: int = 0

    def record(self, outcome: DispatchOutcome) -> None:
        setattr(self, outcome.value, getattr(self, outcome.value) + 1)

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class _Envelope:
    topic: InvoiceTopic
    payload: Any


def _invoice_id_of(payload: Any) -> str:
    if isinstance(payload, InvoiceLifecycleEvent):
        return payload.invoice.id
    if isinstance(payload, dict):
        invoice = payload.get("invoice")
        if isinstance(invoice, dict):
            return str(invoice.get("id", ""))
    return ""


class RevenueEventDispatcher:
    """Background worker applying invoice events to revenue buckets."""

    def __init__(
        self,
        reconciler: RevenueReconciliationService,
        registry: ProcessedEventRegistry | None = None,
        workers: int | None = None,
        queue_size: int | None = None,
        max_retries: int | None = None,
        backoff_factor: float | None = None,
        base_delay: float | None = None,
    ):
        """Initialize the dispatcher.

        Args:
            reconciler: Service that applies a validated event
            registry: Processed-event registry; None disables deduplication
            workers: Number of ordered lanes
            queue_size: Capacity of each lane
            max_retries: Retries after a database error before dead-lettering
            backoff_factor: Exponential backoff multiplier
            base_delay: Delay before the first retry, in seconds
        """
        self.reconciler = reconciler
        self.registry = registry
        self.workers = workers or settings.DISPATCHER_WORKERS
        self.queue_size = queue_size or settings.DISPATCHER_QUEUE_SIZE
        self.max_retries = settings.EVENT_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_factor = backoff_factor or settings.RETRY_BACKOFF_FACTOR
        self.base_delay = settings.RETRY_BASE_DELAY_SECONDS if base_delay is None else base_delay

        self.stats = DispatcherStats()
        self.running = False
        self.logger = logger.bind(component="revenue_dispatcher")
        self._lanes: list[asyncio.Queue[_Envelope]] = []
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def pending(self) -> int:
        """Events queued but not yet picked up."""
        return sum(lane.qsize() for lane in self._lanes)

    async def start(self) -> None:
        """Start one worker task per lane."""
        if self.running:
            self.logger.warning("Revenue dispatcher already running")
            return

        self._lanes = [asyncio.Queue(maxsize=self.queue_size) for _ in range(self.workers)]
        self._tasks = [
            asyncio.create_task(self._run_lane(index, lane)) for index, lane in enumerate(self._lanes)
        ]
        self.running = True
        self.logger.info("Revenue dispatcher started", workers=self.workers)

    async def stop(self, drain: bool = True) -> None:
        """Stop the workers, optionally waiting for queued events first."""
        if drain and self.running:
            await self.drain()

        self.running = False
        for task in self._tasks:
            task.cancel()
        for task in self._tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._tasks = []
        self.logger.info("Revenue dispatcher stopped", **self.stats.as_dict())

    async def drain(self) -> None:
        """Wait until every queued event has been handled."""
        for lane in self._lanes:
            await lane.join()

    async def submit(self, topic: InvoiceTopic, payload: Any) -> None:
        """Queue a payload on the lane owning its invoice.

        Raises:
            RuntimeError: If the dispatcher has not been started
        """
        if not self.running:
            raise RuntimeError("Revenue dispatcher is not running")

        lane = zlib.crc32(_invoice_id_of(payload).encode()) % len(self._lanes)
        await self._lanes[lane].put(_Envelope(topic=InvoiceTopic(topic), payload=payload))

    async def _run_lane(self, index: int, lane: "asyncio.Queue[_Envelope]") -> None:
        """Process one lane's events sequentially."""
        while True:
            envelope = await lane.get()
            try:
                await self.dispatch(envelope.topic, envelope.payload)
            except Exception:
                self.logger.exception("Error in revenue dispatcher lane", lane=index)
            finally:
                lane.task_done()

    async def dispatch(self, topic: InvoiceTopic, payload: Any) -> DispatchOutcome:
        """Validate and apply one event; never raises for a bad event."""
        self.stats.received += 1
        outcome = await self._dispatch(InvoiceTopic(topic), payload)
        self.stats.record(outcome)
        return outcome

    async def _dispatch(self, topic: InvoiceTopic, payload: Any) -> DispatchOutcome:
        try:
            event = self._parse(topic, payload)
        except (ValidationError, RevenueValidationError) as e:
            self.logger.error(
                "event_rejected",
                topic=topic.value,
                invoice_id=_invoice_id_of(payload) or None,
                error=str(e),
                error_type=type(e).__name__,
            )
            return DispatchOutcome.REJECTED

        with structlog.contextvars.bound_contextvars(
            event_id=event.event_id,
            invoice_id=event.invoice.id,
            operation=event.operation.value,
        ):
            if self.registry and not await self.registry.claim(event.event_id):
                self.logger.info("Duplicate event skipped")
                return DispatchOutcome.DUPLICATE

            try:
                outcome = await self._apply_with_retry(event)
            except Exception as e:
                self.logger.exception("event_failed", error_type=type(e).__name__)
                outcome = DispatchOutcome.FAILED

            if outcome in (DispatchOutcome.FAILED, DispatchOutcome.REJECTED) and self.registry:
                await self.registry.release(event.event_id)
            return outcome

    def _parse(self, topic: InvoiceTopic, payload: Any) -> InvoiceLifecycleEvent:
        if isinstance(payload, InvoiceLifecycleEvent):
            event = payload
        else:
            event = InvoiceLifecycleEvent.model_validate(payload)

        if event.operation is not topic.operation:
            raise RevenueValidationError(
                f"Event operation {event.operation.value} does not match topic {topic.value}",
                event_id=event.event_id,
            )
        return event

    async def _apply_with_retry(self, event: InvoiceLifecycleEvent) -> DispatchOutcome:
        attempt = 0
        while True:
            try:
                result = await self.reconciler.handle(event)
            except RevenueDatabaseError as e:
                if attempt >= self.max_retries:
                    self.logger.error(
                        "event_dead_lettered",
                        attempts=attempt + 1,
                        error=e.message,
                        **e.details,
                    )
                    return DispatchOutcome.FAILED

                delay = self.base_delay * (self.backoff_factor**attempt)
                attempt += 1
                self.stats.retries += 1
                self.logger.warning(
                    "Revenue store error, retrying event",
                    attempt=attempt,
                    delay_seconds=delay,
                    error=e.message,
                )
                await asyncio.sleep(delay)
            except (RevenueIntegrityError, RevenueValidationError) as e:
                self.logger.error(
                    "event_rejected",
                    error=e.message,
                    category=e.category,
                    **e.details,
                )
                return DispatchOutcome.REJECTED
            else:
                return DispatchOutcome.APPLIED if result.applied else DispatchOutcome.NO_EFFECT
