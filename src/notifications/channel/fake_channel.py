"""Fake notification channel: records deliveries for testing."""

from uuid import uuid4

from notifications.channel.port import NotificationChannel
from notifications.notification import NotificationEvent


class FakeChannel(NotificationChannel):
    """Channel that records messages in memory for test assertions.

    Failures can be configured globally or for individual recipients.
    """

    def __init__(self):
        self.delivered: list[dict] = []
        self.attempts: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
        self.failing_recipients: set[str] = set()

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def fail_for(self, email: str) -> None:
        self.failing_recipients.add(email.lower())

    def deliver(self, event: NotificationEvent) -> dict:
        payload = event.to_payload()
        self.attempts.append(payload)

        if not self.should_succeed or event.recipient_email.lower() in self.failing_recipients:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"notify-{uuid4().hex[:12]}"
        self.delivered.append({"message_id": message_id, **payload})
        return {"message_id": message_id, "status": "sent"}

    def sent_to(self, email: str) -> list[dict]:
        return [record for record in self.delivered if record["recipientEmail"] == email]

    def reset(self):
        """Clear deliveries (useful between tests)."""
        self.delivered.clear()
        self.attempts.clear()
        self.failing_recipients.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
