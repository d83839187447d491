"""Inbound cross-domain event handler — Payments reacts to Ordering events.

``order.created`` starts a payment for the order; ``order.cancelled``
cancels every payment of the order that has not settled yet.

A redelivered ``order.created`` whose first attempt was interrupted finds
the existing payment and drives it on from where it stopped instead of
charging twice.
"""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from shared.domain import persist
from shared.events.envelope import EventEnvelope
from shared.events.ordering import ORDER_CANCELLED, ORDER_CREATED, OrderCancelled, OrderCreated
from shared.messaging.coordinator import Coordinator, handles
from shared.messaging.idempotency import IdempotencyGuard
from shared.messaging.outbox import enqueue

from payments.domain import OutboxMessage, payments
from payments.payment.events import outcome_envelope
from payments.payment.initiation import InitiatePayment
from payments.payment.payment import Payment, PaymentMethod

logger = structlog.get_logger(__name__)

DEFAULT_CURRENCY = "USD"
DEFAULT_METHOD = PaymentMethod.CREDIT_CARD


@payments.command(part_of="Payment")
class CancelOrderPayments:
    order_id = Identifier(required=True)
    reason = String(max_length=500)
    correlation_id = String(max_length=255)


@payments.command_handler(part_of=Payment)
class CancelOrderPaymentsHandler:
    @handle(CancelOrderPayments)
    def cancel_order_payments(self, command):
        repo = current_domain.repository_for(Payment)
        for payment in repo.find_by_order_id(command.order_id):
            if not payment.can_be_modified():
                continue
            cancelled = payment.cancel(reason=f"Order cancelled: {command.reason or 'no reason given'}")
            persist(repo, cancelled)
            enqueue(OutboxMessage, outcome_envelope(cancelled, command.correlation_id))
            logger.info("Payment cancelled with order", payment_id=str(payment.id), order_id=command.order_id)


class OrderingEventsCoordinator(Coordinator):
    consumer_name = "payments.ordering-events"

    def __init__(self, guard: IdempotencyGuard, service):
        super().__init__(guard)
        self.service = service

    @handles(ORDER_CREATED, attempt_fields=("orderId",))
    async def on_order_created(self, envelope: EventEnvelope) -> None:
        event = envelope.payload_as(OrderCreated)
        existing = self.service.find_payments(event.order_id)

        if existing:
            logger.info("Payment for order exists, resuming", payment_id=str(existing[-1].id), order_id=event.order_id)
            await self.service.processing.run(str(existing[-1].id), envelope.correlation_id)
            return

        payment_id = self.service.process(
            InitiatePayment(
                order_id=event.order_id,
                user_id=event.user_id,
                amount=event.total,
                currency=event.currency or DEFAULT_CURRENCY,
                method=event.payment_method or DEFAULT_METHOD.value,
                correlation_id=envelope.correlation_id,
                customer_email=event.customer_email,
                merchant_id=event.merchant_id,
                merchant_webhook_url=event.merchant_webhook_url,
            )
        )
        logger.info("Payment created for order", payment_id=payment_id, order_id=event.order_id, amount=event.total)

        await self.service.processing.run(payment_id, envelope.correlation_id)

    @handles(ORDER_CANCELLED, attempt_fields=("orderId",))
    async def on_order_cancelled(self, envelope: EventEnvelope) -> None:
        event = envelope.payload_as(OrderCancelled)
        self.service.process(
            CancelOrderPayments(order_id=event.order_id, reason=event.reason, correlation_id=envelope.correlation_id)
        )
