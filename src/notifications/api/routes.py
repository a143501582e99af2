"""FastAPI routes for the Notifications domain.

Thin adapters over the dispatcher: inspect a dispatch attempt and retry a
failed one. Only the recipient or an admin may do either.
"""

from fastapi import APIRouter, Header

from notifications.api.schemas import NotificationResponse, RetryResponse
from notifications.dispatcher import NotificationDispatcher

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/{notification_id}", response_model=NotificationResponse)
def get_notification(notification_id: str, x_actor_id: str | None = Header(default=None)) -> NotificationResponse:
    notification = NotificationDispatcher().viewable(notification_id, x_actor_id)
    return NotificationResponse.model_validate(notification)


@router.post("/{notification_id}/retry", response_model=RetryResponse)
def retry_notification(notification_id: str, x_actor_id: str | None = Header(default=None)) -> RetryResponse:
    """Re-send a failed notification."""
    dispatcher = NotificationDispatcher()
    dispatcher.viewable(notification_id, x_actor_id)
    result = dispatcher.retry(notification_id)
    return RetryResponse(
        success=result.success,
        notification_id=result.notification_id,
        error=result.error,
        error_code=result.error_code,
    )
