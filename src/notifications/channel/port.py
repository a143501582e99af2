"""Notification channel port: abstract interface for message delivery."""

from abc import ABC, abstractmethod

from notifications.notification import NotificationEvent


class NotificationChannel(ABC):
    """Abstract interface for notification delivery adapters."""

    @abstractmethod
    def deliver(self, event: NotificationEvent) -> dict:
        """Deliver one notification.

        Returns:
            dict with keys: message_id, status ("sent" or "failed"), error (optional)
        """
        ...
