"""Notification retry — command and handler.

The handler moves a FAILED notification to RETRYING; the service then
delivers it again.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier
from protean.utils.globals import current_domain

from shared.domain import persist

from notifications.domain import notifications
from notifications.notification.notification import MAX_RETRY_ATTEMPTS, Notification

logger = structlog.get_logger(__name__)


@notifications.command(part_of="Notification")
class StartNotificationRetry:
    notification_id = Identifier(required=True)


@notifications.command_handler(part_of=Notification)
class NotificationRetryHandler:
    @handle(StartNotificationRetry)
    def start_retry(self, command):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        if not notification.can_retry():
            raise ValidationError(
                {
                    "notification": [
                        f"Notification cannot be retried. Status: {notification.status}, "
                        f"Retries: {notification.retries}/{MAX_RETRY_ATTEMPTS}"
                    ]
                }
            )

        retrying = notification.mark_retrying()
        persist(repo, retrying)
        logger.info("Retrying notification", notification_id=str(retrying.id), attempt=retrying.retries)
        return str(retrying.id)
