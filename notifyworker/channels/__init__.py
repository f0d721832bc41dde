"""Notification channels."""

from notifyworker.channels.email import EmailNotifier

__all__ = ["EmailNotifier"]
