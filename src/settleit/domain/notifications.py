"""Status change notifications.

The engine reports every status change of a transaction, refund or payout
to a ``Notifier`` after the change is committed. Notifier failures are
logged and never undo the change.
"""

from typing import Protocol

from settleit.domain.entities import NotificationEvent
from settleit.logging_config import get_logger

logger = get_logger("notifications")


class Notifier(Protocol):
    def notify(self, event: NotificationEvent) -> None:
        ...


class LoggingNotifier:
    """Default notifier that writes events to the log."""

    def notify(self, event: NotificationEvent) -> None:
        logger.info(
            "status_changed",
            extra={
                "entity_type": event.entity_type,
                "entity_id": event.entity_id,
                "status": event.status,
                "amount": event.amount,
                "currency": event.currency,
            },
        )


class RecordingNotifier:
    """Keeps events in memory."""

    def __init__(self):
        self.events: list[NotificationEvent] = []

    def notify(self, event: NotificationEvent) -> None:
        self.events.append(event)

    def statuses(self, entity_type: str) -> list[str]:
        return [e.status for e in self.events if e.entity_type == entity_type]


def emit(notifier: Notifier, event: NotificationEvent) -> None:
    """Deliver ``event``, logging notifier failures instead of raising."""
    try:
        notifier.notify(event)
    except Exception:
        logger.error(
            "notification_failed",
            extra={"entity_type": event.entity_type, "entity_id": event.entity_id, "status": event.status},
            exc_info=True,
        )
