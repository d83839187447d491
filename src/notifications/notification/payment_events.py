"""Inbound cross-domain event handler — Notifications reacts to Payments events."""

from shared.events.envelope import EventEnvelope
from shared.events.payments import PAYMENT_FAILED, PaymentFailed
from shared.messaging.coordinator import Coordinator, handles
from shared.messaging.idempotency import IdempotencyGuard

from notifications.notification.fanout import Send, notify_customer, notify_merchant


class PaymentEventsCoordinator(Coordinator):
    consumer_name = "notifications.payment-events"

    def __init__(self, guard: IdempotencyGuard, send: Send):
        super().__init__(guard)
        self.send = send

    @handles(PAYMENT_FAILED, aggregate_field="orderId", attempt_fields=("paymentId", "retryCount"))
    async def on_payment_failed(self, envelope: EventEnvelope) -> None:
        event = envelope.payload_as(PaymentFailed)
        context = {
            "payment_id": event.payment_id,
            "order_id": event.order_id,
            "failure_reason": event.failure_reason,
            "amount": event.amount,
            "currency": event.currency,
        }
        await notify_customer(self.send, envelope, event.user_id, event.customer_email, context)
        await notify_merchant(self.send, envelope, event.merchant_id, event.merchant_webhook_url, context)
