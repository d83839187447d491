"""Customer email and merchant webhook fan-out for one consumed event.

The merchant webhook gets its own ``<correlation id>-webhook`` branch so
its deduplication is independent of the customer email.
"""

import json
from collections.abc import Awaitable, Callable

import structlog
from shared.events.envelope import EventEnvelope

from notifications.notification.notification import NotificationChannel
from notifications.notification.sending import CreateNotification
from notifications.templates import get_template
from notifications.templates.merchant_webhook import MerchantWebhookTemplate

logger = structlog.get_logger(__name__)

WEBHOOK_SUFFIX = "webhook"
DEFAULT_MERCHANT_ID = "merchant-001"

Send = Callable[[CreateNotification], Awaitable]


async def notify_customer(
    send: Send,
    envelope: EventEnvelope,
    user_id: str,
    email: str | None,
    context: dict,
) -> None:
    if not email:
        logger.info(
            "No customer email on event, email skipped",
            event_type=envelope.event_type,
            user_id=user_id,
            correlation_id=envelope.correlation_id,
        )
        return

    rendered = get_template(envelope.event_type).render(context)
    await send(
        CreateNotification(
            user_id=user_id,
            channel=NotificationChannel.EMAIL.value,
            recipient=email,
            subject=rendered["subject"],
            body=rendered["body"],
            event_type=envelope.event_type,
            correlation_id=envelope.correlation_id,
            metadata=json.dumps(context),
        )
    )


async def notify_merchant(
    send: Send,
    envelope: EventEnvelope,
    merchant_id: str | None,
    webhook_url: str | None,
    context: dict,
) -> None:
    if not webhook_url:
        return

    rendered = MerchantWebhookTemplate.render(envelope.event_type, context)
    await send(
        CreateNotification(
            user_id=merchant_id or DEFAULT_MERCHANT_ID,
            channel=NotificationChannel.WEBHOOK.value,
            recipient=webhook_url,
            body=rendered["body"],
            event_type=envelope.event_type,
            correlation_id=f"{envelope.correlation_id}-{WEBHOOK_SUFFIX}",
            metadata=json.dumps(
                {"merchant_id": merchant_id, **{k: v for k, v in context.items() if k.endswith("_id")}}
            ),
        )
    )
