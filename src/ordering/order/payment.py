"""Order payment outcomes — commands and handler.

A succeeded payment moves the order from AWAITING_PAYMENT to PAID and
stages ``order.paid``. A failed payment is either only recorded, leaving
the order retryable, or cancels the order; ``failure_policy.py`` decides
which command is issued.
"""

import structlog
from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from shared.domain import persist
from shared.events.envelope import EventEnvelope
from shared.events.ordering import ORDER_CANCELLED, ORDER_PAID
from shared.messaging.outbox import enqueue

from ordering.domain import OutboxMessage, ordering
from ordering.order.events import order_cancelled, order_paid
from ordering.order.history import OrderHistory
from ordering.order.order import Order
from ordering.order.status import OrderStatus

logger = structlog.get_logger(__name__)

PAYMENT_SERVICE_ACTOR = "payment-service"


@ordering.command(part_of="Order")
class MarkOrderPaid:
    order_id = Identifier(required=True)
    payment_id = String(required=True, max_length=255)
    payment_reference = String(required=True, max_length=255)
    amount = Float()
    currency = String(max_length=3)
    correlation_id = String(max_length=255)


@ordering.command(part_of="Order")
class RecordPaymentFailure:
    order_id = Identifier(required=True)
    payment_id = String(required=True, max_length=255)
    failure_reason = String(max_length=500)
    retry_count = Integer(default=0)
    amount = Float()
    currency = String(max_length=3)
    policy = String(max_length=50)
    correlation_id = String(max_length=255)


@ordering.command(part_of="Order")
class CancelOrderAfterPaymentFailure:
    order_id = Identifier(required=True)
    payment_id = String(required=True, max_length=255)
    failure_reason = String(max_length=500)
    retry_count = Integer(default=0)
    amount = Float()
    currency = String(max_length=3)
    policy = String(max_length=50)
    correlation_id = String(max_length=255)


def _failure_metadata(command) -> dict:
    return {
        "payment_id": command.payment_id,
        "failure_reason": command.failure_reason,
        "retry_count": command.retry_count,
        "amount": command.amount,
        "currency": command.currency,
        "policy": command.policy,
    }


@ordering.command_handler(part_of=Order)
class OrderPaymentHandler:
    @handle(MarkOrderPaid)
    def mark_paid(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if order.status == OrderStatus.PAID.value and order.payment_reference == command.payment_reference:
            logger.info("Order already paid with this payment", order_id=str(order.id))
            return str(order.id)

        old_status = order.status
        paid = order.mark_paid(command.payment_reference)
        persist(repo, paid)
        current_domain.repository_for(OrderHistory).add(
            OrderHistory.record(
                order_id=str(paid.id),
                old_status=old_status,
                new_status=paid.status,
                changed_by=PAYMENT_SERVICE_ACTOR,
                reason="Payment succeeded",
                metadata={
                    "payment_id": command.payment_id,
                    "payment_reference": command.payment_reference,
                    "amount": command.amount,
                    "currency": command.currency,
                },
            )
        )
        enqueue(
            OutboxMessage,
            EventEnvelope.create(
                ORDER_PAID,
                str(paid.id),
                order_paid(paid, command.payment_id),
                correlation_id=command.correlation_id,
            ),
        )
        logger.info("Order marked paid", order_id=str(paid.id), payment_id=command.payment_id)
        return str(paid.id)

    @handle(RecordPaymentFailure)
    def record_failure(self, command):
        order = current_domain.repository_for(Order).get(command.order_id)
        if order.status != OrderStatus.AWAITING_PAYMENT.value:
            logger.warning("Payment failure for order not awaiting payment", order_id=str(order.id), status=order.status)

        current_domain.repository_for(OrderHistory).add(
            OrderHistory.record(
                order_id=str(order.id),
                old_status=order.status,
                new_status=order.status,
                changed_by=PAYMENT_SERVICE_ACTOR,
                reason=f"Payment failed: {command.failure_reason}",
                metadata=_failure_metadata(command),
            )
        )
        logger.info("Payment failure recorded, order left retryable", order_id=str(order.id))
        return str(order.id)

    @handle(CancelOrderAfterPaymentFailure)
    def cancel_after_failure(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        old_status = order.status
        cancelled = order.cancel()
        persist(repo, cancelled)

        current_domain.repository_for(OrderHistory).add(
            OrderHistory.record(
                order_id=str(cancelled.id),
                old_status=old_status,
                new_status=cancelled.status,
                changed_by=PAYMENT_SERVICE_ACTOR,
                reason=f"Cancelled after payment failure: {command.failure_reason}",
                metadata=_failure_metadata(command),
            )
        )
        enqueue(
            OutboxMessage,
            EventEnvelope.create(
                ORDER_CANCELLED,
                str(cancelled.id),
                order_cancelled(cancelled, PAYMENT_SERVICE_ACTOR, command.failure_reason),
                correlation_id=command.correlation_id,
            ),
        )
        logger.info("Order cancelled after payment failure", order_id=str(cancelled.id))
        return str(cancelled.id)
