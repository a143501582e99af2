"""Notification dispatch: sends order notifications through the channel.

A failed delivery is reported in the returned result; it never raises to the
caller. Each attempt is recorded as a ``Notification`` so it can be retried,
and a failure to write that record never blocks the delivery itself.
"""

import time
from collections.abc import Callable

import structlog

from identity.profile import ProfileDirectory
from notifications.channel import get_channel
from notifications.channel.port import NotificationChannel
from notifications.notification import (
    MISSING_EMAIL,
    DispatchReport,
    Notification,
    NotificationEvent,
    NotificationResult,
    NotificationStatus,
    NotificationType,
    Recipient,
    RecipientRole,
)
from shared.config import get_settings
from shared.database import session_scope
from shared.errors import Forbidden, MarketplaceError, MissingContactInfo, NotFound, Unauthenticated

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    def __init__(
        self,
        channel: NotificationChannel | None = None,
        profiles: ProfileDirectory | None = None,
        same_recipient_delay: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._channel = channel
        self.profiles = profiles or ProfileDirectory()
        self.same_recipient_delay = (
            same_recipient_delay if same_recipient_delay is not None else get_settings().same_recipient_delay
        )
        self.sleep = sleep

    @property
    def channel(self) -> NotificationChannel:
        return self._channel or get_channel()

    # -------------------------------------------------------------------
    # Recipients
    # -------------------------------------------------------------------
    def _profile(self, profile_id: str):
        try:
            return self.profiles.get(profile_id)
        except MarketplaceError as exc:
            logger.error("Profile lookup failed", profile_id=profile_id, error=exc.first_message())
            return None

    def customer_of(self, order) -> Recipient:
        """The customer's profile; the email the processor reported fills a gap."""
        profile = self._profile(order.customer_id)
        recipient = Recipient.from_profile(profile, fallback_email=getattr(order, "customer_contact", None))
        return recipient if recipient.id else Recipient(id=order.customer_id, email=recipient.email)

    def tailor_of(self, order) -> Recipient:
        recipient = Recipient.from_profile(self._profile(order.tailor_id))
        return recipient if recipient.id else Recipient(id=order.tailor_id, email=None)

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    def notify(
        self,
        notification_type: NotificationType,
        order,
        recipient: Recipient | None,
        extra: dict | None = None,
        recipient_role: RecipientRole | None = None,
    ) -> NotificationResult:
        """Send one notification to one recipient."""
        recipient = recipient or Recipient(id=None, email=None)
        additional_data = dict(extra or {})
        if recipient_role is not None:
            additional_data["recipientRole"] = recipient_role.value

        event = NotificationEvent(
            type=notification_type,
            order_id=order.id,
            recipient_email=recipient.email or "",
            recipient_name=recipient.name,
            additional_data=additional_data,
        )
        record_id = self._record(event, recipient, recipient_role)

        if not recipient.has_contact:
            error = MissingContactInfo({"recipient": [MISSING_EMAIL]})
            logger.warning(
                "Notification recipient has no email",
                notification_type=notification_type.value,
                order_id=order.id,
                recipient_id=recipient.id,
            )
            self._update(record_id, sent=False, reason=MISSING_EMAIL)
            return NotificationResult(
                success=False,
                notification_id=record_id,
                recipient_id=recipient.id,
                error=MISSING_EMAIL,
                error_code=error.code,
            )

        return self._deliver(event, record_id, recipient.id)

    def notify_all(
        self,
        notification_type: NotificationType,
        order,
        customer: Recipient | None = None,
        tailor: Recipient | None = None,
        extra: dict | None = None,
    ) -> DispatchReport:
        """Notify customer and tailor independently.

        When both parties share an email address each message is marked with
        the role it is meant for, and the sends are spaced apart so the
        channel does not treat the second as a duplicate.
        """
        customer = customer if customer is not None else self.customer_of(order)
        tailor = tailor if tailor is not None else self.tailor_of(order)

        same_email = bool(
            customer.has_contact and tailor.has_contact and customer.email.strip().lower() == tailor.email.strip().lower()
        )
        customer_role = RecipientRole.CUSTOMER if same_email else None
        tailor_role = RecipientRole.TAILOR if same_email else None

        customer_result = self.notify(notification_type, order, customer, extra, recipient_role=customer_role)
        if same_email and self.same_recipient_delay > 0:
            self.sleep(self.same_recipient_delay)
        tailor_result = self.notify(notification_type, order, tailor, extra, recipient_role=tailor_role)

        report = DispatchReport(customer_result=customer_result, tailor_result=tailor_result)
        logger.info(
            "Order parties notified",
            notification_type=notification_type.value,
            order_id=order.id,
            customer_sent=customer_result.success,
            tailor_sent=tailor_result.success,
        )
        return report

    def viewable(self, notification_id: str, actor_id: str | None) -> Notification:
        """The notification, if the actor is its recipient or an admin."""
        if not actor_id:
            raise Unauthenticated({"actor_id": ["Authentication required"]})
        profile = self.profiles.get(actor_id)
        if profile is None:
            raise Forbidden({"actor": ["Unknown actor"]})

        with session_scope() as session:
            notification = session.get(Notification, notification_id)
        if notification is None:
            raise NotFound({"notification_id": ["Notification not found"]})
        if not profile.is_admin and notification.recipient_id != profile.id:
            raise Forbidden({"actor": ["Not the recipient of this notification"]})
        return notification

    def retry(self, notification_id: str) -> NotificationResult:
        """Re-send a failed notification.

        The recipient's email is looked up again, so a fixed profile makes a
        missing-contact failure retryable.
        """
        with session_scope() as session:
            notification = session.get(Notification, notification_id)
            if notification is None:
                raise NotFound({"notification_id": ["Notification not found"]})
            recipient_id = notification.recipient_id
            needs_contact = not notification.recipient_email

        profile = self.profiles.get(recipient_id) if needs_contact else None

        with session_scope() as session:
            notification = session.get(Notification, notification_id)
            notification.retry()
            if profile is not None and profile.email:
                notification.recipient_email = profile.email
                notification.recipient_name = profile.display_name
            event = notification.to_event()

        logger.info("Retrying notification", notification_id=notification_id)
        if not event.recipient_email:
            self._update(notification_id, sent=False, reason=MISSING_EMAIL)
            return NotificationResult(
                success=False,
                notification_id=notification_id,
                recipient_id=recipient_id,
                error=MISSING_EMAIL,
                error_code=MissingContactInfo.__name__,
            )
        return self._deliver(event, notification_id, recipient_id)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _deliver(self, event: NotificationEvent, record_id: str | None, recipient_id: str | None) -> NotificationResult:
        try:
            response = self.channel.deliver(event)
        except Exception as exc:
            logger.error(
                "Notification channel raised",
                notification_type=event.type.value,
                order_id=event.order_id,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            response = {"status": "failed", "error": str(exc)}

        sent = response.get("status") == "sent"
        error = None if sent else (response.get("error") or "Unknown dispatch error")
        self._update(record_id, sent=sent, reason=error)

        if not sent:
            logger.warning(
                "Notification delivery failed",
                notification_type=event.type.value,
                order_id=event.order_id,
                notification_id=record_id,
                error=error,
            )
        return NotificationResult(
            success=sent,
            notification_id=record_id,
            recipient_id=recipient_id,
            error=error,
            error_code=None if sent else "DeliveryFailed",
        )

    def _record(self, event: NotificationEvent, recipient: Recipient, role: RecipientRole | None) -> str | None:
        notification = Notification.create(event.type, event.order_id, recipient, event.to_payload(), role)
        try:
            with session_scope() as session:
                session.add(notification)
        except MarketplaceError as exc:
            logger.error("Failed to record notification", order_id=event.order_id, error=exc.first_message())
            return None
        return notification.id

    def _update(self, record_id: str | None, sent: bool, reason: str | None) -> None:
        if record_id is None:
            return
        try:
            with session_scope() as session:
                notification = session.get(Notification, record_id)
                if notification is None or NotificationStatus(notification.status) != NotificationStatus.PENDING:
                    return
                if sent:
                    notification.mark_sent()
                else:
                    notification.mark_failed(reason or "Unknown dispatch error")
        except MarketplaceError as exc:
            logger.error("Failed to update notification record", notification_id=record_id, error=exc.first_message())
