"""Order creation and submission — commands and handler.

An order starts PENDING. Submitting it moves it to AWAITING_PAYMENT and
stages ``order.created``, which starts the payment choreography.
``CreateOrder`` submits immediately unless ``submit_for_payment`` is off,
in which case the customer can still edit items and submit later with
``SubmitOrder``.
"""

import json
from uuid import uuid4

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from shared.domain import persist
from shared.events.envelope import EventEnvelope
from shared.events.ordering import ORDER_CREATED
from shared.messaging.outbox import enqueue

from ordering.domain import OutboxMessage, ordering
from ordering.order.events import order_created
from ordering.order.history import OrderHistory
from ordering.order.order import Order
from ordering.order.status import OrderStatus

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class CreateOrder:
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of item dicts
    currency = String(max_length=3, default="USD")
    payment_method = String(max_length=50)
    customer_email = String(max_length=255)
    merchant_id = String(max_length=255)
    merchant_webhook_url = String(max_length=2048)
    correlation_id = String(max_length=255)
    submit_for_payment = Boolean(default=True)


@ordering.command(part_of="Order")
class SubmitOrder:
    order_id = Identifier(required=True)
    submitted_by = String(required=True, max_length=255)
    payment_method = String(max_length=50)
    correlation_id = String(max_length=255)


def _submit(order: Order, changed_by: str, payment_method: str | None, correlation_id: str | None) -> Order:
    submitted = order.mark_awaiting_payment()
    current_domain.repository_for(OrderHistory).add(
        OrderHistory.record(
            order_id=str(order.id),
            old_status=order.status,
            new_status=submitted.status,
            changed_by=changed_by,
            reason="Order submitted for payment",
            metadata={"total": submitted.total, "currency": submitted.currency},
        )
    )
    enqueue(
        OutboxMessage,
        EventEnvelope.create(
            ORDER_CREATED,
            str(submitted.id),
            order_created(submitted, payment_method),
            correlation_id=correlation_id or submitted.correlation_id,
        ),
    )
    logger.info("Order submitted for payment", order_id=str(submitted.id), total=submitted.total)
    return submitted


@ordering.command_handler(part_of=Order)
class OrderCreationHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        items_data = json.loads(command.items) if isinstance(command.items, str) else command.items
        correlation_id = command.correlation_id or str(uuid4())

        order = Order.create(
            user_id=command.user_id,
            items=items_data,
            currency=command.currency or "USD",
            correlation_id=correlation_id,
            customer_email=command.customer_email,
            merchant_id=command.merchant_id,
            merchant_webhook_url=command.merchant_webhook_url,
        )
        current_domain.repository_for(OrderHistory).add(
            OrderHistory.record(
                order_id=str(order.id),
                old_status=OrderStatus.PENDING.value,
                new_status=OrderStatus.PENDING.value,
                changed_by=command.user_id,
                reason="Order created",
                metadata={"correlation_id": correlation_id},
            )
        )
        logger.info("Order created", order_id=str(order.id), user_id=order.user_id, items=len(order.items))

        if command.submit_for_payment:
            order = _submit(order, command.user_id, command.payment_method, correlation_id)
        current_domain.repository_for(Order).add(order)
        return str(order.id)

    @handle(SubmitOrder)
    def submit_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        submitted = _submit(order, command.submitted_by, command.payment_method, command.correlation_id)
        persist(repo, submitted)
        return str(order.id)
