"""Inbound cross-domain event handler — Notifications reacts to Order events.

``order.created`` confirms the order to the customer and, when the order
names a merchant webhook, tells the merchant. ``order.paid`` and
``order.cancelled`` only email the customer.
"""

from shared.events.envelope import EventEnvelope
from shared.events.ordering import (
    ORDER_CANCELLED,
    ORDER_CREATED,
    ORDER_PAID,
    OrderCancelled,
    OrderCreated,
    OrderPaid,
)
from shared.messaging.coordinator import Coordinator, handles
from shared.messaging.idempotency import IdempotencyGuard

from notifications.notification.fanout import Send, notify_customer, notify_merchant


class OrderingEventsCoordinator(Coordinator):
    consumer_name = "notifications.ordering-events"

    def __init__(self, guard: IdempotencyGuard, send: Send):
        super().__init__(guard)
        self.send = send

    @handles(ORDER_CREATED, aggregate_field="orderId", attempt_fields=("orderId",))
    async def on_order_created(self, envelope: EventEnvelope) -> None:
        event = envelope.payload_as(OrderCreated)
        context = {
            "order_id": event.order_id,
            "user_id": event.user_id,
            "total": event.total,
            "currency": event.currency,
            "item_count": len(event.items),
        }
        await notify_customer(self.send, envelope, event.user_id, event.customer_email, context)
        await notify_merchant(
            self.send,
            envelope,
            event.merchant_id,
            event.merchant_webhook_url,
            {**context, "items": [item.to_dict() for item in event.items]},
        )

    @handles(ORDER_PAID, aggregate_field="orderId", attempt_fields=("orderId",))
    async def on_order_paid(self, envelope: EventEnvelope) -> None:
        event = envelope.payload_as(OrderPaid)
        await notify_customer(
            self.send,
            envelope,
            event.user_id,
            event.customer_email,
            {
                "order_id": event.order_id,
                "payment_id": event.payment_id,
                "payment_reference": event.payment_reference,
                "amount": event.total,
                "currency": event.currency,
            },
        )

    @handles(ORDER_CANCELLED, aggregate_field="orderId", attempt_fields=("orderId",))
    async def on_order_cancelled(self, envelope: EventEnvelope) -> None:
        event = envelope.payload_as(OrderCancelled)
        await notify_customer(
            self.send,
            envelope,
            event.user_id,
            event.customer_email,
            {"order_id": event.order_id, "reason": event.reason, "cancelled_by": event.cancelled_by},
        )
