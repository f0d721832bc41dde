"""Core components of the notification worker.

Types:
    NotificationEvent: Immutable, validated notification with id, type, timestamp and data.
    NotificationType: Known notification types.
    QueueConsumer: Orchestrator that decodes, delivers, audits and acknowledges.
    HandlingOutcome: Result of handling one delivery.
    ConsumerStats: Statistics dataclass from a QueueConsumer run.

Classification:
    Classification: MALFORMED, PERMANENT_FAILURE, TRANSIENT_FAILURE, DELIVERED.
    AckAction: ACK, NACK, REQUEUE, REJECT.
    classify: Pure mapping from processing results to both of the above.

Collaborators:
    DeliveryInvoker / Notifier: Delivery through a notification channel.
    AuditRecorder / AuditStore: Best-effort append of outcome records.
    InMemoryAuditStore: Simple in-memory implementation.

Errors:
    DecodeError, NotificationValidationError, UnsupportedTypeError,
    TransientInfraError, BrokerUnavailableError.
"""

from notifyworker.core.audit import AuditRecorder, AuditStore, InMemoryAuditStore
from notifyworker.core.classifier import (
    AckAction,
    Classification,
    DeliveryResult,
    DeliveryStatus,
    classify,
)
from notifyworker.core.consumer import (
    BrokerUnavailableError,
    ConsumerStats,
    HandlingOutcome,
    QueueConsumer,
)
from notifyworker.core.delivery import (
    REQUIRED_KEYS,
    DeliveryInvoker,
    NotificationValidationError,
    Notifier,
    TransientInfraError,
    UnsupportedTypeError,
)
from notifyworker.core.event import (
    DecodeError,
    NotificationError,
    NotificationEvent,
    NotificationType,
    decode_event,
)

__all__ = [
    "AckAction",
    "AuditRecorder",
    "AuditStore",
    "BrokerUnavailableError",
    "Classification",
    "ConsumerStats",
    "DecodeError",
    "DeliveryInvoker",
    "DeliveryResult",
    "DeliveryStatus",
    "HandlingOutcome",
    "InMemoryAuditStore",
    "NotificationError",
    "NotificationEvent",
    "NotificationType",
    "NotificationValidationError",
    "Notifier",
    "QueueConsumer",
    "REQUIRED_KEYS",
    "TransientInfraError",
    "UnsupportedTypeError",
    "classify",
    "decode_event",
]
