"""Notification records and the values passed to delivery channels.

Each dispatch attempt to one recipient is persisted as a ``Notification`` so
failed deliveries can be found and retried.

State Machine:
    PENDING → SENT
    PENDING → FAILED → (retry) → PENDING
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.database import Base, UTCDateTime, utcnow
from shared.errors import ValidationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationType(Enum):
    ORDER_PLACED = "order_placed"
    ORDER_PENDING = "order_pending"
    ORDER_ACCEPTED = "order_accepted"
    ORDER_REJECTED = "order_rejected"
    ORDER_IN_PROGRESS = "order_in_progress"
    ORDER_READY_TO_SHIP = "order_ready_to_ship"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"

    @classmethod
    def for_status(cls, status: str) -> "NotificationType":
        """The notification announcing an order status."""
        return cls(f"order_{status}")


class RecipientRole(Enum):
    CUSTOMER = "CUSTOMER"
    TAILOR = "TAILOR"


class NotificationStatus(Enum):
    PENDING = "Pending"
    SENT = "Sent"
    FAILED = "Failed"


_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENT, NotificationStatus.FAILED},
    NotificationStatus.FAILED: {NotificationStatus.PENDING},  # Via retry
    NotificationStatus.SENT: set(),  # Terminal
}

MISSING_EMAIL = "Missing email address in profile"


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class Recipient:
    id: str | None
    email: str | None
    name: str = ""

    @classmethod
    def from_profile(cls, profile, fallback_email: str | None = None) -> "Recipient":
        if profile is None:
            return cls(id=None, email=fallback_email)
        return cls(id=profile.id, email=profile.email or fallback_email, name=profile.display_name)

    @property
    def has_contact(self) -> bool:
        return bool(self.email and self.email.strip())


@dataclass(frozen=True)
class NotificationEvent:
    """What a channel delivers for one recipient."""

    type: NotificationType
    order_id: str
    recipient_email: str
    recipient_name: str
    additional_data: dict = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "type": self.type.value,
            "recipientEmail": self.recipient_email,
            "recipientName": self.recipient_name,
            "referenceId": self.order_id,
            "additionalData": self.additional_data,
        }


@dataclass(frozen=True)
class NotificationResult:
    success: bool
    notification_id: str | None = None
    recipient_id: str | None = None
    error: str | None = None
    error_code: str | None = None

    def as_dict(self) -> dict:
        return {
            "success": self.success,
            "notification_id": self.notification_id,
            "error": self.error,
            "error_code": self.error_code,
        }


@dataclass(frozen=True)
class DispatchReport:
    customer_result: NotificationResult
    tailor_result: NotificationResult

    def as_dict(self) -> dict:
        return {
            "customer": self.customer_result.as_dict(),
            "tailor": self.tailor_result.as_dict(),
        }


# ---------------------------------------------------------------------------
# Record
# ---------------------------------------------------------------------------
class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    notification_type: Mapped[str] = mapped_column(String(40))
    order_id: Mapped[str] = mapped_column(String(36), index=True)
    recipient_id: Mapped[str | None] = mapped_column(String(64), default=None)
    recipient_email: Mapped[str | None] = mapped_column(String(255), default=None)
    recipient_name: Mapped[str | None] = mapped_column(String(255), default=None)
    recipient_role: Mapped[str | None] = mapped_column(String(16), default=None)
    payload: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(16), default=NotificationStatus.PENDING.value, index=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, default=None)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, default=3)
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), default=None)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow)

    @classmethod
    def create(cls, event_type: NotificationType, order_id: str, recipient: Recipient, payload: dict, recipient_role=None):
        now = utcnow()
        return cls(
            id=str(uuid4()),
            notification_type=event_type.value,
            order_id=order_id,
            recipient_id=recipient.id,
            recipient_email=recipient.email,
            recipient_name=recipient.name,
            recipient_role=recipient_role.value if recipient_role else None,
            payload=payload,
            status=NotificationStatus.PENDING.value,
            attempts=0,
            max_retries=3,
            created_at=now,
            updated_at=now,
        )

    def _assert_can_transition(self, target_status: NotificationStatus) -> None:
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def mark_sent(self) -> None:
        self._assert_can_transition(NotificationStatus.SENT)
        now = utcnow()
        self.status = NotificationStatus.SENT.value
        self.attempts = (self.attempts or 0) + 1
        self.failure_reason = None
        self.sent_at = now
        self.updated_at = now

    def mark_failed(self, reason: str) -> None:
        self._assert_can_transition(NotificationStatus.FAILED)
        self.status = NotificationStatus.FAILED.value
        self.attempts = (self.attempts or 0) + 1
        self.failure_reason = reason
        self.updated_at = utcnow()

    def retry(self) -> None:
        """Put a failed notification back in the queue."""
        if NotificationStatus(self.status) != NotificationStatus.FAILED:
            raise ValidationError({"status": ["Only failed notifications can be retried"]})
        if self.attempts > self.max_retries:
            raise ValidationError({"attempts": ["Maximum retry attempts exceeded"]})

        self.status = NotificationStatus.PENDING.value
        self.failure_reason = None
        self.updated_at = utcnow()

    def to_event(self) -> NotificationEvent:
        return NotificationEvent(
            type=NotificationType(self.notification_type),
            order_id=self.order_id,
            recipient_email=self.recipient_email or "",
            recipient_name=self.recipient_name or "",
            additional_data=dict((self.payload or {}).get("additionalData") or {}),
        )
