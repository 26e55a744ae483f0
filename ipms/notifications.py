"""Outbound notifications (mail gateway is an external collaborator)."""

import logging
from typing import Protocol
from uuid import uuid4

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class Notification(BaseModel):
    recipient_user_id: int
    recipient_email: str
    recipient_name: str
    subject: str
    message: str
    practice_id: int | None = None


class Notifier(Protocol):
    async def send(self, notification: Notification) -> str:
        """Deliver the notification and return a provider message id."""
        ...


class LoggingNotifier:
    """Default notifier: logs the message instead of handing it to a mail provider."""

    async def send(self, notification: Notification) -> str:
        message_id = str(uuid4())
        logger.info(
            "notification %s to user %s <%s>: %s",
            message_id,
            notification.recipient_user_id,
            notification.recipient_email,
            notification.subject,
        )
        return message_id


_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    """Dependency returning the configured notifier."""
    return _notifier


class Outbox:
    """Notifications held back until the surrounding transaction has committed."""

    def __init__(self):
        self.pending: list[Notification] = []

    def add(self, notification: Notification) -> None:
        self.pending.append(notification)

    async def deliver(self, notifier: Notifier) -> list[str]:
        message_ids = []
        while self.pending:
            notification = self.pending.pop(0)
            message_id = await notifier.send(notification)
            logger.info(
                "delivered %s for practice %s as %s",
                notification.subject,
                notification.practice_id,
                message_id,
            )
            message_ids.append(message_id)
        return message_ids
