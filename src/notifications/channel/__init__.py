"""Notification channel registry.

Provides singleton access to the delivery channel. Uses the fake channel by
default; the HTTP channel is used when NOTIFY_URL is configured.
"""

from notifications.channel.port import NotificationChannel

_channel_instance: NotificationChannel | None = None


def build_channel(settings=None) -> NotificationChannel:
    from shared.config import get_settings

    settings = settings or get_settings()
    if settings.notify_url:
        from notifications.channel.http_notify import HttpNotifyChannel

        return HttpNotifyChannel(settings.notify_url, timeout=settings.notify_timeout)

    from notifications.channel.fake_channel import FakeChannel

    return FakeChannel()


def get_channel() -> NotificationChannel:
    """Return the configured channel adapter (singleton)."""
    global _channel_instance
    if _channel_instance is None:
        _channel_instance = build_channel()
    return _channel_instance


def set_channel(channel: NotificationChannel) -> None:
    global _channel_instance
    _channel_instance = channel


def reset_channel() -> None:
    """Reset the channel singleton (useful for testing)."""
    global _channel_instance
    _channel_instance = None
