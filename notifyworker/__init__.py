"""notifyworker - Async notification worker consuming events from RabbitMQ."""

from notifyworker.brokers import Broker, Delivery, InMemoryBroker, QueueTopology, RabbitMQBroker
from notifyworker.core import (
    AckAction,
    AuditStore,
    BrokerUnavailableError,
    Classification,
    ConsumerStats,
    DecodeError,
    DeliveryInvoker,
    HandlingOutcome,
    InMemoryAuditStore,
    NotificationEvent,
    NotificationType,
    NotificationValidationError,
    Notifier,
    QueueConsumer,
    TransientInfraError,
    UnsupportedTypeError,
    classify,
    decode_event,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "NotificationEvent",
    "NotificationType",
    "QueueConsumer",
    "HandlingOutcome",
    "ConsumerStats",
    "DeliveryInvoker",
    "Notifier",
    "decode_event",
    # Classification
    "Classification",
    "AckAction",
    "classify",
    # Errors
    "DecodeError",
    "NotificationValidationError",
    "UnsupportedTypeError",
    "TransientInfraError",
    "BrokerUnavailableError",
    # Audit
    "AuditStore",
    "InMemoryAuditStore",
    # Brokers
    "Broker",
    "Delivery",
    "InMemoryBroker",
    "QueueTopology",
    "RabbitMQBroker",
    # Meta
    "__version__",
]
