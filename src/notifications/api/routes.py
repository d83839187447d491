"""FastAPI routes for the Notifications service."""

from fastapi import APIRouter, Depends, Query, Request
from shared.api import get_principal, service_for
from shared.auth import Principal

from notifications.api.schemas import NotificationResponse

notification_router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notifications(request: Request):
    return service_for(request, "notifications")


@notification_router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    request: Request,
    user_id: str | None = Query(default=None),
    principal: Principal = Depends(get_principal),
) -> list[NotificationResponse]:
    notifications = _notifications(request).list_user_notifications(principal, user_id or principal.user_id)
    return [NotificationResponse.from_notification(n) for n in notifications]


@notification_router.get("/{notification_id}", response_model=NotificationResponse)
async def get_notification(
    notification_id: str, request: Request, principal: Principal = Depends(get_principal)
) -> NotificationResponse:
    notification = _notifications(request).get_notification(principal, notification_id)
    return NotificationResponse.from_notification(notification)


@notification_router.post("/{notification_id}/retry", response_model=NotificationResponse)
async def retry_notification(
    notification_id: str, request: Request, principal: Principal = Depends(get_principal)
) -> NotificationResponse:
    notification = await _notifications(request).retry_notification(principal, notification_id)
    return NotificationResponse.from_notification(notification)
