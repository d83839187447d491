"""InventoryItem aggregate — stock level of one product.

Immutable. ``quantity`` is physical stock, ``reserved`` is the part held
for orders; neither can go negative and stock can never drop below what
is reserved.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer

from shared.domain import evolve
from shared.events.inventory import StockOperation

from inventory.domain import inventory


def _positive(amount: int, field_name: str = "quantity") -> None:
    if not isinstance(amount, int) or amount <= 0:
        raise ValidationError({field_name: ["Amount must be a positive integer"]})


@inventory.aggregate
class InventoryItem:
    product_id = Identifier(required=True)
    quantity = Integer(default=0, min_value=0)
    reserved = Integer(default=0, min_value=0)
    updated_at = DateTime()

    @classmethod
    def create(cls, product_id: str, quantity: int = 0, reserved: int = 0) -> "InventoryItem":
        item = cls(product_id=product_id, quantity=quantity, reserved=reserved, updated_at=datetime.now(UTC))
        if item.reserved > item.quantity:
            raise ValidationError({"reserved": ["Reserved quantity cannot exceed stock"]})
        return item

    @property
    def available(self) -> int:
        return self.quantity - self.reserved

    def increment(self, amount: int) -> "InventoryItem":
        _positive(amount)
        return self._with(quantity=self.quantity + amount)

    def decrement(self, amount: int) -> "InventoryItem":
        _positive(amount)
        if amount > self.available:
            raise ValidationError({"quantity": ["Insufficient stock"]})
        return self._with(quantity=self.quantity - amount)

    def reserve(self, amount: int) -> "InventoryItem":
        _positive(amount)
        if amount > self.available:
            raise ValidationError({"quantity": ["Insufficient stock"]})
        return self._with(reserved=self.reserved + amount)

    def release(self, amount: int) -> "InventoryItem":
        _positive(amount)
        if amount > self.reserved:
            raise ValidationError({"reserved": ["Cannot release more than is reserved"]})
        return self._with(reserved=self.reserved - amount)

    def set_quantity(self, target: int) -> "InventoryItem":
        """Reach an absolute stock level through increment / decrement."""
        if not isinstance(target, int) or target < 0:
            raise ValidationError({"quantity": ["Target quantity must be a non-negative integer"]})
        diff = target - self.quantity
        if diff > 0:
            return self.increment(diff)
        if diff < 0:
            return self.decrement(-diff)
        return self

    def adjust(self, operation: StockOperation, quantity: int) -> "InventoryItem":
        """The item after an increment / decrement / set request; ``self`` if nothing changes."""
        if operation == StockOperation.INCREMENT:
            return self.increment(quantity)
        if operation == StockOperation.DECREMENT:
            return self.decrement(quantity)
        return self.set_quantity(quantity)

    def _with(self, **changes) -> "InventoryItem":
        return evolve(self, updated_at=max(datetime.now(UTC), self.updated_at), **changes)
