"""Outcome classification for processed deliveries.

Maps what happened to a delivery onto one of four terminal classifications
and the acknowledgment the broker should receive:

    MALFORMED          -> REJECT   (discard, never redeliverable)
    PERMANENT_FAILURE  -> NACK     (discard, distinct from reject for monitoring)
    TRANSIENT_FAILURE  -> REQUEUE  (negative ack with requeue)
    DELIVERED          -> ACK
"""

from dataclasses import dataclass
from enum import Enum


class Classification(Enum):
    """Terminal classification of one processing attempt."""

    MALFORMED = "malformed"
    PERMANENT_FAILURE = "permanent_failure"
    TRANSIENT_FAILURE = "transient_failure"
    DELIVERED = "delivered"


class AckAction(Enum):
    """Acknowledgment to apply to a delivery.

    ACK: Positive acknowledgment, the broker discards the message.
    NACK: Negative acknowledgment without requeue.
    REQUEUE: Negative acknowledgment with requeue.
    REJECT: Reject without requeue.
    """

    ACK = "ack"
    NACK = "nack"
    REQUEUE = "requeue"
    REJECT = "reject"


class DeliveryStatus(Enum):
    """Result of a delivery attempt as seen by the classifier."""

    DELIVERED = "delivered"
    FAILED = "failed"
    UNSUPPORTED_TYPE = "unsupported_type"
    MISSING_DATA = "missing_data"

    @property
    def is_permanent(self) -> bool:
        return self in (DeliveryStatus.UNSUPPORTED_TYPE, DeliveryStatus.MISSING_DATA)


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of a delivery attempt."""

    status: DeliveryStatus
    error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status is DeliveryStatus.DELIVERED


ACK_ACTIONS: dict[Classification, AckAction] = {
    Classification.MALFORMED: AckAction.REJECT,
    Classification.PERMANENT_FAILURE: AckAction.NACK,
    Classification.TRANSIENT_FAILURE: AckAction.REQUEUE,
    Classification.DELIVERED: AckAction.ACK,
}


def classify(
    decoded: bool,
    result: DeliveryResult | None = None,
    fault: bool = False,
) -> tuple[Classification, AckAction]:
    """Classify a processing attempt.

    A decode failure wins over everything else, then an unexpected fault,
    then the delivery result.

    Args:
        decoded: Whether the payload decoded into an event.
        result: The delivery result, if delivery got that far.
        fault: Whether an unexpected error interrupted processing.

    Returns:
        The classification and the acknowledgment it implies.
    """
    if not decoded:
        classification = Classification.MALFORMED
    elif fault or result is None:
        classification = Classification.TRANSIENT_FAILURE
    elif result.delivered:
        classification = Classification.DELIVERED
    elif result.status.is_permanent:
        classification = Classification.PERMANENT_FAILURE
    else:
        classification = Classification.TRANSIENT_FAILURE
    return classification, ACK_ACTIONS[classification]
