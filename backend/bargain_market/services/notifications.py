"""
Notification dispatcher collaborator.

WHAT: Deliver negotiation events to the other participant
WHY: Buyers and sellers learn about offers, counters and decisions
HOW: Protocol with a database inbox dispatcher, an httpx webhook dispatcher
     and a composite; the engine calls them after commit and only logs failures
"""

from typing import List, Protocol

import httpx

from ..core.config import settings
from ..core.database import get_db
from ..core.models import Notification
from ..models.bargain import NotificationEvent
from ..utils.logger import get_logger

logger = get_logger(__name__)


class NotificationDeliveryError(Exception):
    """A dispatcher could not hand the event to its destination."""
    pass


class NotificationDispatcher(Protocol):
    """Fire-and-forget delivery of negotiation events."""

    def notify(self, event: NotificationEvent) -> None:
        ...


class DatabaseNotificationDispatcher:
    """Store events as rows in the recipient's notification inbox."""

    def notify(self, event: NotificationEvent) -> None:
        with get_db() as db:
            db.add(Notification(
                user_id=event.recipient_id,
                thread_id=event.thread_id,
                event_type=event.type,
                message=event.describe(),
                created_at=event.created_at
            ))
        logger.debug(f"Stored {event.type.value} notification for {event.recipient_id}")


class WebhookNotificationDispatcher:
    """POST events as JSON to an HTTP endpoint."""

    def __init__(self, url: str, timeout: float | None = None):
        self.url = url
        self.timeout = timeout if timeout is not None else settings.NOTIFICATION_WEBHOOK_TIMEOUT
        self.client = httpx.Client(timeout=httpx.Timeout(self.timeout))

    def notify(self, event: NotificationEvent) -> None:
        try:
            response = self.client.post(self.url, json=event.model_dump(mode="json"))
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise NotificationDeliveryError(f"Webhook timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise NotificationDeliveryError(
                f"Webhook returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise NotificationDeliveryError(f"Webhook request failed: {e}") from e

        logger.debug(f"Posted {event.type.value} event for thread {event.thread_id} to webhook")

    def close(self) -> None:
        self.client.close()


class CompositeNotificationDispatcher:
    """Fan an event out to several dispatchers; one failing does not stop the rest."""

    def __init__(self, dispatchers: List[NotificationDispatcher]):
        self.dispatchers = dispatchers

    def notify(self, event: NotificationEvent) -> None:
        failures = []
        for dispatcher in self.dispatchers:
            try:
                dispatcher.notify(event)
            except Exception as e:
                logger.error(f"{type(dispatcher).__name__} failed for thread {event.thread_id}: {e}")
                failures.append(e)

        if failures and len(failures) == len(self.dispatchers):
            raise NotificationDeliveryError(f"All {len(failures)} dispatchers failed")


# Singleton instance
_dispatcher_instance: NotificationDispatcher | None = None


def get_dispatcher() -> NotificationDispatcher:
    """
    Get the configured dispatcher singleton.

    The inbox dispatcher is always on; NOTIFICATION_WEBHOOK_URL adds a webhook.
    """
    global _dispatcher_instance
    if _dispatcher_instance is None:
        dispatchers: List[NotificationDispatcher] = [DatabaseNotificationDispatcher()]
        if settings.NOTIFICATION_WEBHOOK_URL:
            dispatchers.append(WebhookNotificationDispatcher(settings.NOTIFICATION_WEBHOOK_URL))
        _dispatcher_instance = CompositeNotificationDispatcher(dispatchers)
        logger.info(f"Notification dispatchers initialized: {[type(d).__name__ for d in dispatchers]}")
    return _dispatcher_instance


def reset_dispatcher() -> None:
    """Reset the dispatcher singleton (useful for testing)."""
    global _dispatcher_instance
    _dispatcher_instance = None
