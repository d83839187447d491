"""Notification lookups by correlation chain and by user."""

from shared.messaging.outbox import QUERY_LIMIT

from notifications.domain import notifications
from notifications.notification.notification import Notification


@notifications.repository(part_of=Notification)
class NotificationRepository:
    def find_by_correlation_id(self, correlation_id: str) -> list[Notification]:
        found = self._dao.query.filter(correlation_id=correlation_id).limit(QUERY_LIMIT).all().items
        return sorted(found, key=lambda notification: notification.created_at)

    def find_by_user_id(self, user_id: str) -> list[Notification]:
        found = self._dao.query.filter(user_id=user_id).limit(QUERY_LIMIT).all().items
        return sorted(found, key=lambda notification: notification.created_at)
