"""Broker implementations for notification intake."""

from notifyworker.brokers.base import Broker, Delivery, QueueTopology
from notifyworker.brokers.inmemory import (
    BrokerClosedError,
    InMemoryBroker,
    Settlement,
    UnknownDeliveryError,
)
from notifyworker.brokers.rabbitmq import RabbitMQBroker

__all__ = [
    "Broker",
    "BrokerClosedError",
    "Delivery",
    "InMemoryBroker",
    "QueueTopology",
    "RabbitMQBroker",
    "Settlement",
    "UnknownDeliveryError",
]
