"""In-memory broker using asyncio primitives for FIFO delivery."""

import asyncio
import itertools
from dataclasses import dataclass

from notifyworker.brokers.base import Delivery, QueueTopology


class BrokerClosedError(Exception):
    """Raised when using a broker that is not connected."""

    pass


class UnknownDeliveryError(Exception):
    """Raised when settling a delivery that is not outstanding.

    Mirrors the broker-side channel error for an unknown delivery tag:
    every delivery may be settled exactly once.
    """

    pass


@dataclass(frozen=True)
class Settlement:
    """Record of how a delivery was settled."""

    delivery_tag: int
    body: bytes
    method: str  # "ack", "nack", "requeue" or "reject"


class InMemoryBroker:
    """Async FIFO broker with explicit acknowledgment.

    Suitable for development and testing. Messages are lost when the
    process exits. Behaves like a queue with manual acks:

    - at most ``topology.prefetch_count`` deliveries are outstanding at once
      (0 means unlimited),
    - ``nack(requeue=True)`` puts the message back at the tail and marks the
      next delivery of it as redelivered,
    - ``close()`` returns outstanding deliveries to the queue.

    Args:
        topology: Queue settings; only ``prefetch_count`` is enforced.
    """

    def __init__(self, topology: QueueTopology | None = None) -> None:
        self.topology = topology or QueueTopology()
        self._queue: asyncio.Queue[tuple[bytes, bool]] = asyncio.Queue()
        self._outstanding: dict[int, Delivery] = {}
        self._tags = itertools.count(1)
        self._capacity = asyncio.Condition()
        self._connected = False
        self.settlements: list[Settlement] = []
        self.connect_count = 0

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True
        self.connect_count += 1

    async def publish(self, body: bytes | str) -> None:
        """Append a message to the queue."""
        if isinstance(body, str):
            body = body.encode("utf-8")
        await self._queue.put((body, False))

    async def _wait_for_capacity(self) -> None:
        limit = self.topology.prefetch_count
        if limit <= 0:
            return
        async with self._capacity:
            await self._capacity.wait_for(lambda: len(self._outstanding) < limit)

    async def pull(self, timeout: float = 1.0) -> Delivery | None:
        """Hand out the next message, blocking up to timeout seconds.

        Raises:
            BrokerClosedError: If the broker is not connected.
        """
        if not self._connected:
            raise BrokerClosedError("Broker is not connected")
        try:
            async with asyncio.timeout(timeout):
                await self._wait_for_capacity()
                body, redelivered = await self._queue.get()
        except TimeoutError:
            return None

        delivery = Delivery(body=body, delivery_tag=next(self._tags), redelivered=redelivered)
        self._outstanding[delivery.delivery_tag] = delivery
        return delivery

    async def _settle(self, delivery: Delivery, method: str) -> None:
        if delivery.delivery_tag not in self._outstanding:
            raise UnknownDeliveryError(f"Unknown delivery tag {delivery.delivery_tag}")
        del self._outstanding[delivery.delivery_tag]
        self.settlements.append(Settlement(delivery.delivery_tag, delivery.body, method))
        if method == "requeue":
            await self._queue.put((delivery.body, True))
        async with self._capacity:
            self._capacity.notify_all()

    async def ack(self, delivery: Delivery) -> None:
        await self._settle(delivery, "ack")

    async def nack(self, delivery: Delivery, requeue: bool) -> None:
        await self._settle(delivery, "requeue" if requeue else "nack")

    async def reject(self, delivery: Delivery) -> None:
        await self._settle(delivery, "reject")

    async def close(self) -> None:
        """Disconnect, returning unsettled deliveries to the queue."""
        for delivery in list(self._outstanding.values()):
            await self._queue.put((delivery.body, True))
        self._outstanding.clear()
        self._connected = False
        async with self._capacity:
            self._capacity.notify_all()

    def qsize(self) -> int:
        """Return the number of messages waiting for delivery."""
        return self._queue.qsize()

    @property
    def outstanding(self) -> int:
        """Number of delivered but unsettled messages."""
        return len(self._outstanding)

    def settled_with(self, method: str) -> list[Settlement]:
        return [s for s in self.settlements if s.method == method]
