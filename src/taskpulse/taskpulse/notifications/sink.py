from __future__ import annotations

import logging
from typing import Iterable, Protocol

from .model import NotificationEvent

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    def send(self, event: NotificationEvent) -> None:
        raise NotImplementedError


class LoggingNotificationSink(NotificationSink):
    """Writes events to the application log. Used when no store is wired."""

    def send(self, event: NotificationEvent) -> None:
        logger.info(
            "notify user=%s type=%s task=%s: %s",
            event.recipient_id,
            event.type.value,
            event.task_id,
            event.title,
        )


def dispatch(sink: NotificationSink, events: Iterable[NotificationEvent]) -> int:
    """Send events one by one; returns how many were delivered.

    Delivery failures are logged and never reach the caller.
    """
    delivered = 0
    for event in events:
        try:
            sink.send(event)
            delivered += 1
        except Exception:
            logger.exception("Notification to user %s failed (%s)", event.recipient_id, event.type.value)
    return delivered
