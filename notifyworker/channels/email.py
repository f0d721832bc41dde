"""Email notifier delivering notification events over SMTP."""

import logging
from email.message import EmailMessage
from email.utils import formataddr
from html import escape

import aiosmtplib

from notifyworker.config import SmtpSettings
from notifyworker.core.delivery import NotificationValidationError, UnsupportedTypeError
from notifyworker.core.event import NotificationEvent, NotificationType

logger = logging.getLogger("notifyworker.email")

DEFAULT_RECIPIENT_NAME = "Customer"

# Data keys whose values end up in message headers.
HEADER_KEYS = ("UserEmail", "OrderId")

_SIGNATURE = "<p>Best regards,<br/>The Notifications Team</p>"


def _render_user_registration(user_name: str, data: dict[str, str]) -> tuple[str, str]:
    subject = "Welcome to our platform!"
    body = (
        "<html><body>"
        f"<h2>Hello {escape(user_name)}!</h2>"
        "<p>Your registration was completed successfully.</p>"
        "<p>You can now enjoy all of our features.</p>"
        f"<br/>{_SIGNATURE}"
        "</body></html>"
    )
    return subject, body


def _render_order_created(user_name: str, data: dict[str, str]) -> tuple[str, str]:
    order_id = data.get("OrderId")
    if not order_id:
        raise NotificationValidationError(NotificationType.ORDER_CREATED.value, ["OrderId"])
    subject = f"Order #{order_id} created"
    body = (
        "<html><body>"
        f"<h2>Hello {escape(user_name)}!</h2>"
        f"<p>Your order #{escape(order_id)} was created successfully.</p>"
        "<p>Track its status on our platform.</p>"
        f"<br/>{_SIGNATURE}"
        "</body></html>"
    )
    return subject, body


TEMPLATES = {
    NotificationType.USER_REGISTRATION: _render_user_registration,
    NotificationType.ORDER_CREATED: _render_order_created,
}


class EmailNotifier:
    """Sends one HTML email per notification event.

    ``send`` returns False when SMTP settings are incomplete or the SMTP
    exchange fails; events that cannot be rendered raise
    UnsupportedTypeError or NotificationValidationError.
    """

    def __init__(self, settings: SmtpSettings) -> None:
        self.settings = settings

    def compose(self, event: NotificationEvent) -> EmailMessage:
        """Build the email for an event.

        Raises:
            UnsupportedTypeError: No template exists for the event type.
            NotificationValidationError: ``UserEmail`` or a type-specific key is
                missing, or a header value contains a line break.
        """
        render = TEMPLATES.get(event.known_type)
        if render is None:
            raise UnsupportedTypeError(event.type)

        recipient = event.data.get("UserEmail")
        if not recipient:
            raise NotificationValidationError(event.type, ["UserEmail"])

        broken = [
            key for key in HEADER_KEYS
            if "\r" in event.data.get(key, "") or "\n" in event.data.get(key, "")
        ]
        if broken:
            raise NotificationValidationError(event.type, broken, reason="Line break in header data")

        user_name = event.data.get("UserName") or DEFAULT_RECIPIENT_NAME

        subject, html = render(user_name, event.data)

        message = EmailMessage()
        message["From"] = formataddr((self.settings.sender_name, self.settings.sender_email or ""))
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(html, subtype="html")
        return message

    async def send(self, event: NotificationEvent) -> bool:
        if not self.settings.complete:
            logger.error(
                "Email settings incomplete; cannot send notification",
                extra={"event_id": event.id, "event_type": event.type},
            )
            return False

        message = self.compose(event)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.settings.server,
                port=self.settings.port,
                username=self.settings.username,
                password=self.settings.password,
                start_tls=self.settings.use_tls,
                timeout=self.settings.timeout,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error(
                f"Error sending email for notification {event.id}: {e}",
                extra={"event_id": event.id, "event_type": event.type, "error": str(e)},
            )
            return False

        logger.info(
            f"Email sent to {message['To']} - type: {event.type}",
            extra={"event_id": event.id, "event_type": event.type},
        )
        return True
