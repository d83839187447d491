"""Pydantic response schemas for the Notifications API."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from notifications.notification.notification import Notification


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    channel: str
    recipient: str
    subject: str | None = None
    body: str
    status: str
    event_type: str
    correlation_id: str
    retries: int
    error_message: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    sent_at: datetime | None = None
    failed_at: datetime | None = None
    created_at: datetime

    @classmethod
    def from_notification(cls, notification: Notification) -> "NotificationResponse":
        return cls(
            id=str(notification.id),
            user_id=notification.user_id,
            channel=notification.channel,
            recipient=notification.recipient,
            subject=notification.subject,
            body=notification.body,
            status=notification.status,
            event_type=notification.event_type,
            correlation_id=notification.correlation_id,
            retries=notification.retries,
            error_message=notification.error_message,
            metadata=notification.metadata,
            sent_at=notification.sent_at,
            failed_at=notification.failed_at,
            created_at=notification.created_at,
        )
