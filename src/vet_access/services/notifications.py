"""
Notification collaborator and after-commit dispatch.

Components collect ``NotificationEvent`` objects while they work and hand them
to ``NotificationDispatcher.dispatch`` once the transaction has committed.
Each event is delivered by a background task; delivery failures are logged and
never reach the operation that produced the event.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, runtime_checkable

import requests

from ..utils.config import AccessSettings

logger = logging.getLogger(__name__)


class EventType:
    """Notification event names."""

    ACCESS_REQUEST_CREATED = "access_request.created"
    ACCESS_REQUEST_APPROVED = "access_request.approved"
    ACCESS_REQUEST_REJECTED = "access_request.rejected"
    ACCESS_REVOKED = "access.revoked"
    FOLLOW_UP_SCHEDULED = "follow_up.scheduled"
    FOLLOW_UP_APPROVED = "follow_up.approved"
    FOLLOW_UP_REJECTED = "follow_up.rejected"
    FOLLOW_UP_RESCHEDULED = "follow_up.rescheduled"


@dataclass(frozen=True)
class NotificationEvent:
    """One message for one recipient."""

    recipient_id: uuid.UUID
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class NotificationCollaborator(Protocol):
    """Delivery transport for notification events."""

    async def notify(
        self, recipient_id: uuid.UUID, event_type: str, payload: Dict[str, Any]
    ) -> None: ...


class LoggingNotifier:
    """Notifier that only writes events to the log."""

    def __init__(self, level: int = logging.INFO):
        self.level = level
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def notify(
        self, recipient_id: uuid.UUID, event_type: str, payload: Dict[str, Any]
    ) -> None:
        self.logger.log(
            self.level,
            f"Notification {event_type} for {recipient_id}",
            extra={"notification_payload": payload},
        )


class WebhookNotifier:
    """Notifier that POSTs each event as JSON to a webhook URL."""

    def __init__(self, webhook_url: str, timeout: float = 10.0):
        """
        Initialize the webhook notifier.

        Args:
            webhook_url: Endpoint receiving the events
            timeout: Request timeout in seconds
        """
        self.webhook_url = webhook_url
        self.timeout = timeout
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _post(self, body: Dict[str, Any]) -> None:
        response = requests.post(self.webhook_url, json=body, timeout=self.timeout)
        response.raise_for_status()

    async def notify(
        self, recipient_id: uuid.UUID, event_type: str, payload: Dict[str, Any]
    ) -> None:
        """
        Deliver one event.

        ``requests`` is blocking, so the POST runs in a worker thread.

        Raises:
            requests.RequestException: If the webhook is unreachable or answers
                with an error status
        """
        body = {
            "recipient_id": str(recipient_id),
            "event_type": event_type,
            "payload": payload,
        }
        await asyncio.to_thread(self._post, body)
        self.logger.debug(f"Webhook notification {event_type} sent")


class CompositeNotifier:
    """Fan an event out to several notifiers."""

    def __init__(self, notifiers: Iterable[NotificationCollaborator]):
        self.notifiers = list(notifiers)

    async def notify(
        self, recipient_id: uuid.UUID, event_type: str, payload: Dict[str, Any]
    ) -> None:
        for notifier in self.notifiers:
            try:
                await notifier.notify(recipient_id, event_type, payload)
            except Exception as e:
                logger.warning(
                    f"{notifier.__class__.__name__} failed to deliver {event_type}: {e}"
                )


def build_notifier(settings: AccessSettings) -> NotificationCollaborator:
    """Create the notifier described by the settings."""
    if settings.notification_webhook_url:
        return CompositeNotifier(
            [
                LoggingNotifier(),
                WebhookNotifier(
                    settings.notification_webhook_url,
                    timeout=settings.notification_timeout_seconds,
                ),
            ]
        )
    return LoggingNotifier()


class NotificationDispatcher:
    """Fire-and-forget delivery of events after a successful commit."""

    def __init__(self, notifier: NotificationCollaborator):
        self.notifier = notifier
        self._tasks: Set[asyncio.Task] = set()
        self.delivered = 0
        self.failed = 0

    def dispatch(self, events: Iterable[NotificationEvent]) -> List[asyncio.Task]:
        """
        Schedule delivery of ``events`` without waiting for it.

        Must be called from a running event loop.

        Returns:
            The scheduled tasks
        """
        scheduled = []
        for event in events:
            task = asyncio.create_task(
                self._deliver(event), name=f"notify:{event.event_type}"
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            scheduled.append(task)
        return scheduled

    async def _deliver(self, event: NotificationEvent) -> None:
        try:
            await self.notifier.notify(event.recipient_id, event.event_type, event.payload)
            self.delivered += 1
        except Exception as e:
            self.failed += 1
            logger.warning(
                f"Notification {event.event_type} to {event.recipient_id} failed: {e}"
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for scheduled deliveries to finish."""
        if not self._tasks:
            return
        await asyncio.wait(set(self._tasks), timeout=timeout)
