"""Notifications service: the notifications domain, delivery and the inbound coordinators."""

from shared.auth import Principal
from shared.config import ServiceSettings
from shared.messaging.broker import Broker
from shared.messaging.coordinator import Coordinator
from shared.messaging.idempotency import IdempotencyGuard
from shared.service import Service

from notifications.channel.registry import ProviderRegistry, build_registry
from notifications.domain import OutboxMessage, notifications
from notifications.notification import repository  # noqa: F401
from notifications.notification.delivery import NotificationDelivery
from notifications.notification.notification import Notification
from notifications.notification.ordering_events import OrderingEventsCoordinator
from notifications.notification.payment_events import PaymentEventsCoordinator
from notifications.notification.retrying import StartNotificationRetry
from notifications.notification.sending import CreateNotification
from notifications.notification.status import NotificationStatus


class NotificationsService(Service):
    domain = notifications
    outbox_message = OutboxMessage

    def __init__(
        self,
        settings: ServiceSettings,
        broker: Broker,
        consumer_broker: Broker | None = None,
        guard: IdempotencyGuard | None = None,
        providers: ProviderRegistry | None = None,
    ):
        super().__init__(settings, broker, consumer_broker, guard)
        self.providers = providers or build_registry(settings)
        self.delivery = NotificationDelivery(self, self.providers)

        self.ordering_events = OrderingEventsCoordinator(self.guard, self.send_notification)
        self.payment_events = PaymentEventsCoordinator(self.guard, self.send_notification)

    @property
    def coordinators(self) -> list[Coordinator]:
        return [self.ordering_events, self.payment_events]

    async def send_notification(self, command: CreateNotification) -> Notification:
        """Create a notification and deliver it; an already-sent duplicate is returned as is."""
        notification = self.load(Notification, self.process(command))
        if notification.status == NotificationStatus.SENT.value:
            return notification
        return await self.delivery.attempt(notification)

    async def retry_notification(self, principal: Principal, notification_id: str) -> Notification:
        principal.assert_admin()
        self.process(StartNotificationRetry(notification_id=notification_id))
        return await self.delivery.attempt(self.load(Notification, notification_id))

    def get_notification(self, principal: Principal, notification_id: str) -> Notification:
        notification = self.load(Notification, notification_id)
        principal.assert_owner_or_admin(notification.user_id)
        return notification

    def list_user_notifications(self, principal: Principal, user_id: str) -> list[Notification]:
        principal.assert_owner_or_admin(user_id)
        with self.repository(Notification) as repo:
            return repo.find_by_user_id(user_id)
