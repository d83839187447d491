"""Administrative order status update — command and handler.

Admin only; the service checks the caller before the command runs. The
state machine still applies and marking an order paid needs a payment
reference. Each change is recorded in history and announced with the
matching ``order.*`` event.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from shared.domain import persist
from shared.events.envelope import EventEnvelope
from shared.events.ordering import (
    ORDER_CANCELLED,
    ORDER_COMPLETED,
    ORDER_CREATED,
    ORDER_PAID,
    ORDER_SHIPPED,
)
from shared.messaging.outbox import enqueue

from ordering.domain import OutboxMessage, ordering
from ordering.order.events import order_cancelled, order_created, order_paid, order_status_changed
from ordering.order.history import OrderHistory
from ordering.order.order import Order
from ordering.order.status import OrderStatus

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class UpdateOrderStatus:
    order_id = Identifier(required=True)
    new_status = String(required=True, max_length=50)
    changed_by = String(required=True, max_length=255)
    reason = String(max_length=500)
    payment_reference = String(max_length=255)
    correlation_id = String(max_length=255)


def _event_for(order: Order, old_status: str, command: UpdateOrderStatus):
    status = OrderStatus(order.status)
    if status == OrderStatus.AWAITING_PAYMENT:
        return ORDER_CREATED, order_created(order)
    if status == OrderStatus.PAID:
        return ORDER_PAID, order_paid(order)
    if status == OrderStatus.CANCELLED:
        return ORDER_CANCELLED, order_cancelled(order, command.changed_by, command.reason)
    event_type = ORDER_SHIPPED if status == OrderStatus.SHIPPED else ORDER_COMPLETED
    return event_type, order_status_changed(order, old_status)


@ordering.command_handler(part_of=Order)
class UpdateOrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        try:
            target = OrderStatus(command.new_status)
        except ValueError:
            raise ValidationError({"new_status": [f"Unknown order status: {command.new_status}"]}) from None

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        old_status = order.status
        updated = order.change_status(target, command.payment_reference)
        persist(repo, updated)

        current_domain.repository_for(OrderHistory).add(
            OrderHistory.record(
                order_id=str(order.id),
                old_status=old_status,
                new_status=updated.status,
                changed_by=command.changed_by,
                reason=command.reason,
                metadata={"payment_reference": command.payment_reference} if command.payment_reference else {},
            )
        )
        logger.info(
            "Order status updated",
            order_id=str(order.id),
            old_status=old_status,
            new_status=updated.status,
            changed_by=command.changed_by,
        )

        event_type, payload = _event_for(updated, old_status, command)
        enqueue(
            OutboxMessage,
            EventEnvelope.create(
                event_type,
                str(updated.id),
                payload,
                correlation_id=command.correlation_id or updated.correlation_id,
            ),
        )
        return str(updated.id)
