"""Queue consumer for notification deliveries.

The QueueConsumer is the orchestrator that:
- Pulls raw deliveries from a broker, one at a time
- Decodes, delivers, classifies and audits each one (``handle``)
- Settles the delivery with the acknowledgment the classification implies

``handle`` never touches the broker. It returns a HandlingOutcome and the
consumer applies the acknowledgment itself, exactly once per delivery.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from notifyworker.core.audit import AuditRecorder, AuditStore
from notifyworker.core.classifier import AckAction, Classification, DeliveryResult, classify
from notifyworker.core.delivery import DeliveryInvoker, TransientInfraError
from notifyworker.core.event import DecodeError, NotificationEvent, decode_event
from notifyworker.core.logging import configure_consumer_logger

if TYPE_CHECKING:
    from notifyworker.brokers.base import Broker, Delivery

# Circuit breaker defaults
DEFAULT_MAX_CONSECUTIVE_FAILURES = 10


class BrokerUnavailableError(Exception):
    """Raised when the broker cannot be reached.

    Either the initial connection failed, or pulls failed consecutively
    beyond the configured threshold.

    Attributes:
        failure_count: Number of consecutive failures that triggered this error.
        last_error: The last exception message from the broker.
    """

    def __init__(self, message: str, failure_count: int = 0, last_error: str | None = None):
        self.failure_count = failure_count
        self.last_error = last_error
        super().__init__(message)

    def __str__(self) -> str:
        base = super().__str__()
        if self.last_error:
            return f"{base} (last error: {self.last_error})"
        return base


@dataclass(frozen=True)
class HandlingOutcome:
    """Result of handling one raw delivery.

    Attributes:
        classification: Terminal classification.
        action: Acknowledgment to apply.
        event: Terminal event state, None when the payload was malformed.
        error: Description of the failure, None when delivered.
        audited: Whether an outcome record was stored.
    """

    classification: Classification
    action: AckAction
    event: NotificationEvent | None = None
    error: str | None = None
    audited: bool = False


@dataclass
class ConsumerStats:
    """Statistics from a QueueConsumer run."""

    deliveries_received: int = 0
    classifications: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    audit_failures: int = 0
    settle_errors: int = 0
    broker_errors: int = 0

    def count(self, classification: Classification) -> int:
        return self.classifications.get(classification.value, 0)


class QueueConsumer:
    """Serial consumer of notification deliveries."""

    def __init__(
        self,
        broker: "Broker",
        invoker: DeliveryInvoker,
        audit_store: AuditStore | None = None,
        max_consecutive_broker_failures: int = DEFAULT_MAX_CONSECUTIVE_FAILURES,
        pull_timeout: float = 1.0,
        log_level: int = logging.INFO,
        failure_backoff: float = 0.1,
    ) -> None:
        self.broker = broker
        self.invoker = invoker
        self.recorder = AuditRecorder(audit_store)
        self.max_consecutive_broker_failures = max_consecutive_broker_failures
        self.pull_timeout = pull_timeout
        self.failure_backoff = failure_backoff
        self._log = configure_consumer_logger(log_level)
        self._running = False
        self._started = False
        self._stats = ConsumerStats()
        self._consecutive_pull_failures = 0
        self._last_broker_error: str | None = None

        if not self.recorder.enabled:
            self._log.warning("Audit store not configured; notification outcomes will not be stored")

    async def __aenter__(self) -> "QueueConsumer":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.stop()
        await self.close()

    async def start(self) -> None:
        """Connect the broker and declare topology.

        Raises:
            BrokerUnavailableError: If the broker cannot be reached.
        """
        self._log.info("Connecting to broker")
        try:
            await self.broker.connect()
        except Exception as e:
            self._log.error(f"Failed to connect to broker: {e}", extra={"error": str(e)})
            raise BrokerUnavailableError("Failed to connect to broker", last_error=str(e)) from e
        self._started = True
        self._log.info("Broker connected, waiting for notifications")

    def stop(self) -> None:
        """Stop accepting new deliveries; the in-flight one finishes."""
        self._running = False

    async def close(self) -> None:
        """Release the broker and the audit store."""
        self._running = False
        try:
            if self._started:
                self._started = False
                await self.broker.close()
                self._log.info("Notification consumer stopped")
        finally:
            await self.recorder.close()

    def get_stats(self) -> ConsumerStats:
        """Return a copy of current statistics."""
        return ConsumerStats(
            deliveries_received=self._stats.deliveries_received,
            classifications=defaultdict(int, self._stats.classifications),
            audit_failures=self._stats.audit_failures,
            settle_errors=self._stats.settle_errors,
            broker_errors=self._stats.broker_errors,
        )

    async def handle(self, body: bytes | str, delivery_tag: int | None = None) -> HandlingOutcome:
        """Decode, deliver, classify and audit one raw message body.

        Per-message failures never escape; they become the classification.
        """
        try:
            event = decode_event(body)
        except DecodeError as e:
            classification, action = classify(decoded=False)
            return self._finish(classification, action, None, str(e), False, delivery_tag)

        self._log.info(
            f"Processing notification {event.id}",
            extra={"event_id": event.id, "event_type": event.type, "delivery_tag": delivery_tag},
        )

        result: DeliveryResult | None = None
        fault: TransientInfraError | None = None
        try:
            result = await self.invoker.deliver(event)
        except Exception as e:
            fault = TransientInfraError(e)
            self._log.exception(
                f"Unexpected error delivering {event.id}: {e}",
                extra={"event_id": event.id, "event_type": event.type, "error": str(e)},
            )

        classification, action = classify(decoded=True, result=result, fault=fault is not None)
        if classification is Classification.DELIVERED:
            error = None
        elif fault is not None:
            error = str(fault)
        else:
            error = result.error or "Notification delivery failed"

        terminal = event.with_outcome(
            sent=classification is Classification.DELIVERED,
            error_message=error,
            timestamp=datetime.now(UTC),
        )
        audited = await self.recorder.record(terminal)
        if self.recorder.enabled and not audited:
            self._stats.audit_failures += 1
        return self._finish(classification, action, terminal, error, audited, delivery_tag)

    def _finish(
        self,
        classification: Classification,
        action: AckAction,
        event: NotificationEvent | None,
        error: str | None,
        audited: bool,
        delivery_tag: int | None,
    ) -> HandlingOutcome:
        self._stats.classifications[classification.value] += 1
        extra = {
            "event_id": event.id if event else None,
            "event_type": event.type if event else None,
            "delivery_tag": delivery_tag,
            "classification": classification.value,
            "action": action.value,
        }
        if classification is Classification.DELIVERED:
            self._log.info(f"Notification {event.id} delivered", extra=extra)
        elif classification is Classification.MALFORMED:
            self._log.error(f"Rejecting malformed message: {error}", extra={**extra, "error": error})
        else:
            self._log.error(
                f"Notification {event.id} failed ({classification.value}): {error}",
                extra={**extra, "error": error},
            )
        return HandlingOutcome(classification, action, event, error, audited)

    async def _settle(self, delivery: "Delivery", action: AckAction) -> None:
        """Apply an acknowledgment to the broker; failures are logged, not raised."""
        try:
            if action is AckAction.ACK:
                await self.broker.ack(delivery)
            elif action is AckAction.NACK:
                await self.broker.nack(delivery, requeue=False)
            elif action is AckAction.REQUEUE:
                await self.broker.nack(delivery, requeue=True)
            else:
                await self.broker.reject(delivery)
        except Exception as e:
            self._stats.settle_errors += 1
            self._log.error(
                f"Failed to {action.value} delivery {delivery.delivery_tag}: {e}",
                extra={"delivery_tag": delivery.delivery_tag, "action": action.value, "error": str(e)},
            )

    async def process(self, delivery: "Delivery") -> HandlingOutcome:
        """Handle one delivery and settle it."""
        self._stats.deliveries_received += 1
        try:
            outcome = await self.handle(delivery.body, delivery.delivery_tag)
        except Exception as e:
            self._stats.classifications[Classification.TRANSIENT_FAILURE.value] += 1
            self._log.exception(
                f"Unexpected error handling delivery {delivery.delivery_tag}: {e}",
                extra={"delivery_tag": delivery.delivery_tag, "error": str(e)},
            )
            classification, action = classify(decoded=True, fault=True)
            outcome = HandlingOutcome(classification, action, error=str(e))
        await self._settle(delivery, outcome.action)
        return outcome

    async def run(self, max_deliveries: int | None = None) -> ConsumerStats:
        """Consume until stopped.

        Args:
            max_deliveries: Return after this many deliveries. None runs
                until ``stop()`` is called.

        Raises:
            BrokerUnavailableError: On start-up failure, or when pulls fail
                consecutively beyond the threshold.
        """
        if not self._started:
            await self.start()

        self._stats = ConsumerStats()
        self._running = True
        self._consecutive_pull_failures = 0

        while self._running:
            if max_deliveries is not None and self._stats.deliveries_received >= max_deliveries:
                break

            # Circuit breaker for broker failures
            if self._consecutive_pull_failures >= self.max_consecutive_broker_failures:
                raise BrokerUnavailableError(
                    f"Broker unavailable after {self._consecutive_pull_failures} failures",
                    failure_count=self._consecutive_pull_failures,
                    last_error=self._last_broker_error,
                )

            try:
                delivery = await self.broker.pull(timeout=self.pull_timeout)
                self._consecutive_pull_failures = 0  # Reset on success
                self._last_broker_error = None
            except Exception as e:
                self._consecutive_pull_failures += 1
                self._stats.broker_errors += 1
                self._last_broker_error = str(e)
                self._log.error(
                    f"Broker pull failed ({self._consecutive_pull_failures}/"
                    f"{self.max_consecutive_broker_failures}): {e}",
                    extra={
                        "error": str(e),
                        "consecutive_failures": self._consecutive_pull_failures,
                    },
                )
                if self._consecutive_pull_failures < self.max_consecutive_broker_failures:
                    await asyncio.sleep(self.failure_backoff)
                continue

            if delivery is None:
                continue

            await self.process(delivery)

        return self._stats
