"""HTTP notification channel: posts each message to the notify endpoint.

The endpoint accepts ``{type, recipientEmail, recipientName, referenceId,
additionalData}`` and answers ``{success: bool, error?: str}``.
"""

import requests
import structlog

from notifications.channel.port import NotificationChannel
from notifications.notification import NotificationEvent

logger = structlog.get_logger(__name__)


class HttpNotifyChannel(NotificationChannel):
    def __init__(self, url: str, timeout: float = 10.0, session: requests.Session | None = None):
        if not url:
            raise ValueError("Notify URL is required")
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

    def deliver(self, event: NotificationEvent) -> dict:
        try:
            response = self.session.post(self.url, json=event.to_payload(), timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning(
                "Notify endpoint request failed",
                notification_type=event.type.value,
                order_id=event.order_id,
                error=str(exc),
            )
            return {"message_id": None, "status": "failed", "error": str(exc)}

        if not body.get("success"):
            return {"message_id": None, "status": "failed", "error": body.get("error") or "Notify endpoint refused"}
        return {"message_id": body.get("id"), "status": "sent"}
