"""Pydantic response models for the Notifications API."""

from datetime import datetime

from pydantic import BaseModel


class NotificationResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    notification_type: str
    order_id: str
    recipient_id: str | None = None
    recipient_email: str | None = None
    recipient_role: str | None = None
    status: str
    failure_reason: str | None = None
    attempts: int
    sent_at: datetime | None = None
    created_at: datetime | None = None


class RetryResponse(BaseModel):
    success: bool
    notification_id: str | None = None
    error: str | None = None
    error_code: str | None = None
