"""Delivery invoker wrapping the notification dispatch collaborator."""

import logging
from typing import Protocol

from notifyworker.core.classifier import DeliveryResult, DeliveryStatus
from notifyworker.core.event import NotificationError, NotificationEvent, NotificationType

logger = logging.getLogger("notifyworker.delivery")

# Keys each notification type needs in event.data before a send is attempted.
REQUIRED_KEYS: dict[NotificationType, tuple[str, ...]] = {
    NotificationType.USER_REGISTRATION: ("UserEmail",),
    NotificationType.ORDER_CREATED: ("UserEmail", "OrderId"),
}

# Collaborator errors that mean "try again later".
TRANSIENT_ERRORS = (ConnectionError, OSError, TimeoutError)


class NotificationValidationError(NotificationError):
    """Raised when event data lacks keys required by its type, or holds
    values that cannot be delivered.

    Attributes:
        missing: The offending keys, in declaration order.
    """

    def __init__(
        self,
        notification_type: str,
        missing: list[str],
        reason: str = "Missing required data",
    ) -> None:
        self.notification_type = notification_type
        self.missing = missing
        super().__init__(f"{reason} for {notification_type}: {', '.join(missing)}")


class UnsupportedTypeError(NotificationError):
    """Raised when no delivery behaviour exists for a notification type."""

    def __init__(self, notification_type: str) -> None:
        self.notification_type = notification_type
        super().__init__(f"Unsupported notification type: {notification_type!r}")


class TransientInfraError(NotificationError):
    """Unexpected fault during processing; the delivery is requeued.

    Attributes:
        original: The underlying exception.
    """

    def __init__(self, original: Exception) -> None:
        self.original = original
        super().__init__(str(original) or type(original).__name__)


class Notifier(Protocol):
    """Notification dispatch collaborator.

    ``send`` returns True when the notification went out and False when it
    did not. It may raise UnsupportedTypeError or NotificationValidationError
    for events it cannot render at all.
    """

    async def send(self, event: NotificationEvent) -> bool: ...


class DeliveryInvoker:
    """Validates events and calls the notifier at most once per attempt."""

    def __init__(
        self,
        notifier: Notifier,
        required_keys: dict[NotificationType, tuple[str, ...]] | None = None,
    ) -> None:
        self.notifier = notifier
        self.required_keys = required_keys if required_keys is not None else REQUIRED_KEYS

    def validate(self, event: NotificationEvent) -> NotificationType:
        """Check the event type is supported and its data is complete.

        Raises:
            UnsupportedTypeError: The type is unknown or has no requirements entry.
            NotificationValidationError: Required data keys are missing.
        """
        notification_type = event.known_type
        if notification_type is None or notification_type not in self.required_keys:
            raise UnsupportedTypeError(event.type)

        missing = [key for key in self.required_keys[notification_type] if not event.data.get(key)]
        if missing:
            raise NotificationValidationError(event.type, missing)
        return notification_type

    async def deliver(self, event: NotificationEvent) -> DeliveryResult:
        """Attempt delivery of one event.

        Exceptions other than the permanent and transient families above
        propagate to the caller.
        """
        try:
            self.validate(event)
        except UnsupportedTypeError as e:
            return DeliveryResult(DeliveryStatus.UNSUPPORTED_TYPE, str(e))
        except NotificationValidationError as e:
            return DeliveryResult(DeliveryStatus.MISSING_DATA, str(e))

        try:
            sent = await self.notifier.send(event)
        except UnsupportedTypeError as e:
            return DeliveryResult(DeliveryStatus.UNSUPPORTED_TYPE, str(e))
        except NotificationValidationError as e:
            return DeliveryResult(DeliveryStatus.MISSING_DATA, str(e))
        except TRANSIENT_ERRORS as e:
            logger.warning(
                f"Notifier raised {type(e).__name__} for {event.id}: {e}",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return DeliveryResult(DeliveryStatus.FAILED, f"{type(e).__name__}: {e}")

        if sent:
            return DeliveryResult(DeliveryStatus.DELIVERED)
        return DeliveryResult(DeliveryStatus.FAILED, "Notification delivery failed")
