"""
Hand-off to the notification service.

Delivery is fire-and-forget: a failing dispatcher is logged and never fails
the booking operation that triggered it.
"""

import logging

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Default dispatcher; records events in the log."""

    async def send(self, event: str, **payload) -> None:
        logger.info("Notification %s: %s", event, payload)


dispatcher = NotificationDispatcher()


async def notify(event: str, **payload) -> None:
    try:
        await dispatcher.send(event, **payload)
    except Exception:
        logger.exception("Dispatching %s notification failed", event)
