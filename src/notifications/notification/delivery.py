"""Delivery of one notification through its channel's provider.

Shared by first sends and retries. Delivery problems never escape:
``RecordDeliveryOutcome`` records them on the notification as FAILED
with the error message.
"""

import json

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from shared.domain import persist

from notifications.channel.registry import ProviderRegistry
from notifications.domain import notifications
from notifications.notification.notification import MAX_RETRY_ATTEMPTS, Notification

logger = structlog.get_logger(__name__)


@notifications.command(part_of="Notification")
class RecordDeliveryOutcome:
    notification_id = Identifier(required=True)
    success = Boolean(required=True)
    error_message = String(max_length=1000)
    provider_response = Text()  # JSON: provider response dict


@notifications.command_handler(part_of=Notification)
class DeliveryOutcomeHandler:
    @handle(RecordDeliveryOutcome)
    def record_outcome(self, command):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        if command.success:
            provider_response = json.loads(command.provider_response) if command.provider_response else None
            persist(repo, notification.mark_sent(provider_response))
        else:
            persist(repo, notification.mark_failed(_error_message(notification, command.error_message)))
        return str(notification.id)


def _error_message(notification: Notification, error: str | None) -> str:
    error = error or "Unknown error"
    if notification.retries:
        return f"Retry {notification.retries}/{MAX_RETRY_ATTEMPTS} failed: {error}"
    return error


class NotificationDelivery:
    def __init__(self, service, providers: ProviderRegistry):
        self.service = service
        self.providers = providers

    async def attempt(self, notification: Notification) -> Notification:
        notification_id = str(notification.id)
        try:
            provider = self.providers.get(notification.channel)
            if not await provider.is_available():
                raise RuntimeError(f"Provider {provider.name} is not available")
            result = await provider.send(notification)
        except Exception as exc:
            logger.error(
                "Notification delivery failed",
                notification_id=notification_id,
                channel=notification.channel,
                error=str(exc),
            )
            outcome = RecordDeliveryOutcome(notification_id=notification_id, success=False, error_message=str(exc))
        else:
            if result.success:
                response = {"message_id": result.message_id, "provider": provider.name, **result.metadata}
                if notification.retries:
                    response["retry_attempt"] = notification.retries
                outcome = RecordDeliveryOutcome(
                    notification_id=notification_id, success=True, provider_response=json.dumps(response)
                )
                logger.info(
                    "Notification sent",
                    notification_id=notification_id,
                    channel=notification.channel,
                    event_type=notification.event_type,
                )
            else:
                error = result.error or "Unknown error from provider"
                outcome = RecordDeliveryOutcome(notification_id=notification_id, success=False, error_message=error)
                logger.warning(
                    "Notification rejected by provider",
                    notification_id=notification_id,
                    channel=notification.channel,
                    error=error,
                )

        self.service.process(outcome)
        return self.service.load(Notification, notification_id)
