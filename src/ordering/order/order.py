"""Order aggregate.

Orders are immutable: every operation returns a new ``Order`` that
``persist()`` writes over the stored one. Items can only change while the
order is PENDING and there is always at least one. Status changes are
validated by the state machine in ``status.py``.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from shared.domain import evolve

from ordering.domain import ordering
from ordering.order.status import OrderStatus, is_terminal, transition


def _now() -> datetime:
    return datetime.now(UTC)


@ordering.value_object(part_of="Order")
class OrderItem:
    """A product line captured with the price it had when it was ordered."""

    product_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    quantity = Integer(required=True, min_value=1)
    price_snapshot = Float(required=True, min_value=0.0)

    @property
    def subtotal(self) -> float:
        return round(self.quantity * self.price_snapshot, 2)

    @classmethod
    def from_data(cls, data: dict) -> "OrderItem":
        return cls(
            product_id=data.get("product_id"),
            product_name=data.get("product_name"),
            quantity=data.get("quantity"),
            price_snapshot=data.get("price_snapshot", data.get("unit_price")),
        )


def _encode_items(items) -> str:
    return json.dumps([item.to_dict() for item in items])


@ordering.aggregate
class Order:
    user_id = Identifier(required=True)
    line_items = Text(required=True)  # JSON: list of item dicts
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    currency = String(max_length=3, default="USD")
    correlation_id = String(max_length=255)
    payment_reference = String(max_length=255)
    customer_email = String(max_length=255)
    merchant_id = String(max_length=255)
    merchant_webhook_url = String(max_length=2048)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        user_id: str,
        items: list,
        currency: str = "USD",
        correlation_id: str | None = None,
        customer_email: str | None = None,
        merchant_id: str | None = None,
        merchant_webhook_url: str | None = None,
    ) -> "Order":
        order_items = [item if isinstance(item, OrderItem) else OrderItem.from_data(item) for item in items]
        if not order_items:
            raise ValidationError({"items": ["Order must have at least one item"]})

        now = _now()
        return cls(
            user_id=user_id,
            line_items=_encode_items(order_items),
            status=OrderStatus.PENDING.value,
            currency=currency,
            correlation_id=correlation_id,
            customer_email=customer_email,
            merchant_id=merchant_id,
            merchant_webhook_url=merchant_webhook_url,
            created_at=now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def items(self) -> tuple[OrderItem, ...]:
        return tuple(OrderItem.from_data(data) for data in json.loads(self.line_items or "[]"))

    @property
    def total(self) -> float:
        return round(sum(item.subtotal for item in self.items), 2)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def can_modify_items(self) -> bool:
        return self.status == OrderStatus.PENDING.value

    def can_be_cancelled(self) -> bool:
        return not self.is_terminal

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------
    def add_item(self, item: OrderItem) -> "Order":
        self._assert_items_modifiable()
        return self._with(line_items=_encode_items((*self.items, item)))

    def remove_item(self, product_id: str) -> "Order":
        self._assert_items_modifiable()
        items = self.items
        remaining = [item for item in items if item.product_id != product_id]
        if len(remaining) == len(items):
            raise ValidationError({"product_id": [f"Product {product_id} is not in the order"]})
        if not remaining:
            raise ValidationError({"items": ["Order must have at least one item"]})
        return self._with(line_items=_encode_items(remaining))

    def _assert_items_modifiable(self):
        if not self.can_modify_items():
            raise ValidationError({"status": [f"Items cannot be modified in {self.status} state"]})

    # ------------------------------------------------------------------
    # Status transitions
    # ------------------------------------------------------------------
    def change_status(self, target: OrderStatus, payment_reference: str | None = None) -> "Order":
        if OrderStatus(target) == OrderStatus.PAID:
            return self.mark_paid(payment_reference or "")
        return self._with(status=transition(self.status, target).value)

    def mark_awaiting_payment(self) -> "Order":
        return self.change_status(OrderStatus.AWAITING_PAYMENT)

    def mark_paid(self, payment_reference: str) -> "Order":
        if not payment_reference or not payment_reference.strip():
            raise ValidationError({"payment_reference": ["Payment reference is required to mark an order paid"]})
        return self._with(
            status=transition(self.status, OrderStatus.PAID).value,
            payment_reference=payment_reference,
        )

    def mark_shipped(self) -> "Order":
        return self.change_status(OrderStatus.SHIPPED)

    def mark_completed(self) -> "Order":
        return self.change_status(OrderStatus.COMPLETED)

    def cancel(self) -> "Order":
        return self.change_status(OrderStatus.CANCELLED)

    def _with(self, **changes) -> "Order":
        return evolve(self, updated_at=max(_now(), self.updated_at), **changes)
