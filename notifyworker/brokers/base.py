"""Broker protocol for notification intake.

The QueueConsumer never touches broker state directly: it pulls one
Delivery at a time and then settles it with exactly one of ack, nack or
reject through this interface.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class QueueTopology:
    """Exchange, queue and QoS settings declared when a broker connects."""

    exchange: str = "notification_exchange"
    exchange_type: str = "topic"
    queue: str = "notification_queue"
    routing_key: str = "notifications"
    durable: bool = True
    auto_delete: bool = False
    exclusive: bool = False
    prefetch_size: int = 0
    prefetch_count: int = 1
    global_qos: bool = False


@dataclass
class Delivery:
    """A raw message received from the broker, awaiting settlement.

    Attributes:
        body: The undecoded payload.
        delivery_tag: Broker-assigned tag, unique per channel.
        redelivered: True if the broker delivered this message before.
    """

    body: bytes
    delivery_tag: int
    redelivered: bool = False
    headers: dict[str, Any] = field(default_factory=dict)


class Broker(Protocol):
    """Protocol defining the interface for message brokers.

    Brokers are responsible for:
    - Declaring topology and the prefetch cap (connect)
    - Handing out deliveries one at a time (pull)
    - Settling deliveries explicitly (ack / nack / reject)
    """

    async def connect(self) -> None:
        """Open the connection, declare topology and apply QoS.

        Raises on failure; callers treat this as fatal.
        """
        ...

    async def pull(self, timeout: float = 1.0) -> Delivery | None:
        """Retrieve the next delivery.

        Args:
            timeout: Maximum seconds to wait for a delivery.

        Returns:
            The next Delivery, or None if timeout expires with nothing available.
        """
        ...

    async def ack(self, delivery: Delivery) -> None:
        """Positively acknowledge a delivery."""
        ...

    async def nack(self, delivery: Delivery, requeue: bool) -> None:
        """Negatively acknowledge a delivery, optionally requeueing it."""
        ...

    async def reject(self, delivery: Delivery) -> None:
        """Reject a delivery without requeue."""
        ...

    async def publish(self, body: bytes) -> None:
        """Publish a message to the bound exchange with the topology's routing key."""
        ...

    async def close(self) -> None:
        """Stop consuming and release the channel and connection."""
        ...
