"""Best-effort delivery of notifications produced by workflow transitions"""

import logging
from typing import Iterable

from fintara_gateway.domain.models import Notification, NotificationChannel
from fintara_gateway.infrastructure.clients.notifications import EmailClient, PushClient
from fintara_gateway.infrastructure.observability.metrics import record_dropped_notification

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Sends push and email notifications; never raises to the caller"""

    def __init__(self, push_client: PushClient | None = None, email_client: EmailClient | None = None):
        self.push_client = push_client or PushClient()
        self.email_client = email_client or EmailClient()

    async def dispatch(self, notifications: Iterable[Notification], request_id: str | None = None) -> int:
        """
        Deliver each notification in order.

        The state transition that produced these has already committed, so a
        delivery failure of any kind is logged, counted and skipped.

        Returns:
            Number of notifications delivered
        """
        delivered = 0
        for notification in notifications:
            try:
                if notification.channel == NotificationChannel.PUSH:
                    await self.push_client.send(notification.recipient, notification.title, notification.body)
                else:
                    await self.email_client.send(notification.recipient, notification.template, notification.params)
                delivered += 1
            except Exception as e:
                record_dropped_notification(notification.channel.value)
                logger.warning(
                    f"Notification delivery failed: {e!r}",
                    extra={
                        "request_id": request_id,
                        "channel": notification.channel.value,
                        "template": notification.template,
                    },
                )
        return delivered
