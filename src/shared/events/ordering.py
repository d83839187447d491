"""Event contracts published by the Ordering service.

Routing keys on the ``ecommerce.events`` exchange. Payment, Notification
and Inventory services validate the payloads they consume against these
models.
"""

from shared.events.envelope import EventPayload

ORDER_CREATED = "order.created"
ORDER_PAID = "order.paid"
ORDER_CANCELLED = "order.cancelled"
ORDER_SHIPPED = "order.shipped"
ORDER_COMPLETED = "order.completed"


class OrderItemData(EventPayload):
    product_id: str
    product_name: str
    quantity: int
    price_snapshot: float


class OrderCreated(EventPayload):
    """An order was submitted and is awaiting payment.

    Consumed by Payments to initiate a charge and by Notifications for the
    confirmation email and merchant webhook.
    """

    order_id: str
    user_id: str
    items: list[OrderItemData]
    total: float
    currency: str = "USD"
    payment_method: str | None = None
    customer_email: str | None = None
    merchant_id: str | None = None
    merchant_webhook_url: str | None = None


class OrderPaid(EventPayload):
    order_id: str
    user_id: str
    payment_reference: str
    payment_id: str | None = None
    total: float
    currency: str = "USD"
    customer_email: str | None = None


class OrderCancelled(EventPayload):
    order_id: str
    user_id: str
    reason: str | None = None
    cancelled_by: str
    customer_email: str | None = None


class OrderStatusChanged(EventPayload):
    """Published for the shipping and completion transitions."""

    order_id: str
    user_id: str
    old_status: str
    new_status: str
    customer_email: str | None = None
