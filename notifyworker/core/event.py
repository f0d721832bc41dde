"""Notification event model and wire codec."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator


class NotificationError(Exception):
    """Base class for notification processing errors."""


class DecodeError(NotificationError):
    """Raised when a raw message body cannot be decoded into an event.

    Attributes:
        body: The offending payload, truncated for logging.
    """

    def __init__(self, message: str, body: bytes | str = b"") -> None:
        self.body = body[:200]
        super().__init__(message)


class NotificationType(str, Enum):
    """Notification types the worker knows how to deliver."""

    USER_REGISTRATION = "UserRegistration"
    ORDER_CREATED = "OrderCreated"


class NotificationEvent(BaseModel):
    """Immutable notification event as carried on the queue.

    Field names follow the producer's camelCase wire format through aliases;
    Python code uses the snake_case attribute names.

    Attributes:
        id: Opaque identifier assigned by the producer.
        type: Notification type. Unknown values are kept as-is and rejected
            at delivery time.
        timestamp: When the event was generated, overwritten with the
            processing time once handled.
        data: Type-specific string payload (recipient, order id, ...).
        retry_count: Carried for producers that track it, never read here.
        sent: Whether delivery succeeded.
        error_message: Cause of failure, absent when ``sent`` is true.
    """

    id: str
    type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, str] = Field(default_factory=dict)
    retry_count: int = Field(default=0, alias="retryCount")
    sent: bool = False
    error_message: str | None = Field(default=None, alias="errorMessage")

    model_config = {
        "extra": "ignore",
        "frozen": True,
        "populate_by_name": True,
    }

    @field_validator("id", "type")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        # Values are opaque: check for content, keep them as sent.
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("error_message")
    @classmethod
    def normalize_error_message(cls, v: str | None) -> str | None:
        """Treat an empty error message as absent."""
        return v or None

    @property
    def known_type(self) -> NotificationType | None:
        """The parsed notification type, or None for unknown values."""
        try:
            return NotificationType(self.type)
        except ValueError:
            return None

    def with_outcome(
        self,
        sent: bool,
        error_message: str | None = None,
        timestamp: datetime | None = None,
    ) -> "NotificationEvent":
        """Return a terminal copy of this event.

        ``error_message`` is dropped when ``sent`` is true and required
        otherwise, so a terminal record is always either delivered or
        carries its cause.
        """
        if not sent and not error_message:
            raise ValueError("a failed outcome requires an error message")
        return self.model_copy(
            update={
                "sent": sent,
                "error_message": None if sent else error_message,
                "timestamp": timestamp or datetime.now(UTC),
            }
        )

    def to_document(self) -> dict[str, Any]:
        """Serialize into an audit document using wire field names."""
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        """Serialize into the wire format."""
        return self.model_dump_json(by_alias=True)


def decode_event(body: bytes | str) -> NotificationEvent:
    """Decode a raw message body into a NotificationEvent.

    Only the structure is checked here. Whether ``data`` holds the keys a
    given ``type`` needs is decided at delivery time.

    Raises:
        DecodeError: On malformed JSON, a non-object payload, a missing or
            blank ``id``/``type``, or wrongly typed fields.
    """
    try:
        return NotificationEvent.model_validate_json(body)
    except ValidationError as e:
        fields = sorted({".".join(str(p) for p in err["loc"]) or "<root>" for err in e.errors()})
        raise DecodeError(
            f"Malformed notification payload (fields: {', '.join(fields)}): "
            f"{e.errors()[0]['msg']}",
            body=body,
        ) from e
