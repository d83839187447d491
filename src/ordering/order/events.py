"""Builders for the events the Ordering service publishes."""

from shared.events.ordering import (
    OrderCancelled,
    OrderCreated,
    OrderItemData,
    OrderPaid,
    OrderStatusChanged,
)

from ordering.order.order import Order


def order_created(order: Order, payment_method: str | None = None) -> OrderCreated:
    return OrderCreated(
        order_id=str(order.id),
        user_id=order.user_id,
        items=[OrderItemData(**item.to_dict()) for item in order.items],
        total=order.total,
        currency=order.currency,
        payment_method=payment_method,
        customer_email=order.customer_email,
        merchant_id=order.merchant_id,
        merchant_webhook_url=order.merchant_webhook_url,
    )


def order_paid(order: Order, payment_id: str | None = None) -> OrderPaid:
    return OrderPaid(
        order_id=str(order.id),
        user_id=order.user_id,
        payment_reference=order.payment_reference or "",
        payment_id=payment_id,
        total=order.total,
        currency=order.currency,
        customer_email=order.customer_email,
    )


def order_cancelled(order: Order, cancelled_by: str, reason: str | None = None) -> OrderCancelled:
    return OrderCancelled(
        order_id=str(order.id),
        user_id=order.user_id,
        reason=reason,
        cancelled_by=cancelled_by,
        customer_email=order.customer_email,
    )


def order_status_changed(order: Order, old_status: str) -> OrderStatusChanged:
    return OrderStatusChanged(
        order_id=str(order.id),
        user_id=order.user_id,
        old_status=old_status,
        new_status=order.status,
        customer_email=order.customer_email,
    )
