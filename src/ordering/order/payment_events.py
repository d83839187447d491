"""Inbound cross-domain event handler — Ordering reacts to Payments events.

``payment.succeeded`` marks the order paid. ``payment.failed`` is turned
into a command by the configured ``PaymentFailurePolicy``. Every step is
one Ordering command, so the order change, its history entry and the
staged ``order.*`` announcement commit together.
"""

from collections.abc import Callable

import structlog
from shared.events.envelope import EventEnvelope
from shared.events.payments import PAYMENT_FAILED, PAYMENT_SUCCEEDED, PaymentFailed, PaymentSucceeded
from shared.messaging.coordinator import Coordinator, handles
from shared.messaging.idempotency import IdempotencyGuard

from ordering.order.failure_policy import PaymentFailurePolicy, RecordFailureOnly
from ordering.order.payment import MarkOrderPaid

logger = structlog.get_logger(__name__)


class PaymentEventsCoordinator(Coordinator):
    consumer_name = "ordering.payment-events"

    def __init__(
        self,
        guard: IdempotencyGuard,
        process: Callable,
        failure_policy: PaymentFailurePolicy | None = None,
    ):
        super().__init__(guard)
        self.process = process
        self.failure_policy = failure_policy or RecordFailureOnly()

    @handles(PAYMENT_SUCCEEDED, aggregate_field="orderId", attempt_fields=("paymentId",))
    async def on_payment_succeeded(self, envelope: EventEnvelope) -> None:
        event = envelope.payload_as(PaymentSucceeded)
        self.process(
            MarkOrderPaid(
                order_id=event.order_id,
                payment_id=event.payment_id,
                payment_reference=event.provider_transaction_id,
                amount=event.amount,
                currency=event.currency,
                correlation_id=envelope.correlation_id,
            )
        )

    @handles(PAYMENT_FAILED, aggregate_field="orderId", attempt_fields=("paymentId", "retryCount"))
    async def on_payment_failed(self, envelope: EventEnvelope) -> None:
        event = envelope.payload_as(PaymentFailed)
        logger.info(
            "Payment failed for order",
            order_id=event.order_id,
            payment_id=event.payment_id,
            reason=event.failure_reason,
            policy=self.failure_policy.name,
        )
        self.process(self.failure_policy.command_for(event, envelope.correlation_id))
