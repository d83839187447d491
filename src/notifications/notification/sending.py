"""Notification creation — command and handler.

A notification already SENT for the same correlation id, event type and
channel is returned as is, so redelivered events never notify twice.
"""

import json

import structlog
from protean import handle
from protean.fields import String, Text
from protean.utils.globals import current_domain

from notifications.domain import notifications
from notifications.notification.notification import Notification, parse_channel
from notifications.notification.status import NotificationStatus

logger = structlog.get_logger(__name__)


@notifications.command(part_of="Notification")
class CreateNotification:
    user_id = String(required=True, max_length=255)
    channel = String(required=True, max_length=20)
    recipient = String(max_length=2048)
    body = Text(required=True)
    event_type = String(required=True, max_length=100)
    subject = String(max_length=500)
    correlation_id = String(max_length=255)
    metadata = Text()  # JSON: metadata dict


@notifications.command_handler(part_of=Notification)
class CreateNotificationHandler:
    @handle(CreateNotification)
    def create_notification(self, command):
        channel = parse_channel(command.channel)
        repo = current_domain.repository_for(Notification)

        if command.correlation_id:
            for existing in repo.find_by_correlation_id(command.correlation_id):
                if (
                    existing.status == NotificationStatus.SENT.value
                    and existing.event_type == command.event_type
                    and existing.channel == channel.value
                ):
                    logger.info(
                        "Notification already sent, skipping",
                        notification_id=str(existing.id),
                        correlation_id=command.correlation_id,
                        event_type=command.event_type,
                    )
                    return str(existing.id)

        notification = Notification.create(
            user_id=command.user_id,
            channel=channel,
            recipient=command.recipient,
            body=command.body,
            event_type=command.event_type,
            subject=command.subject,
            correlation_id=command.correlation_id,
            metadata=json.loads(command.metadata) if command.metadata else None,
        )
        repo.add(notification)
        return str(notification.id)
