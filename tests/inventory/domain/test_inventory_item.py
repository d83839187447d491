"""Tests for the InventoryItem aggregate."""

import pytest
from protean.exceptions import ValidationError
from shared.events.inventory import StockOperation

from inventory.stock.stock import InventoryItem


def _item(quantity=5, reserved=0):
    return InventoryItem.create(product_id="prod-001", quantity=quantity, reserved=reserved)


class TestInvariants:
    def test_available_is_stock_minus_reserved(self):
        assert _item(quantity=10, reserved=3).available == 7

    @pytest.mark.parametrize(
        "kwargs,field",
        [
            ({"product_id": ""}, "product_id"),
            ({"quantity": -1}, "quantity"),
            ({"reserved": -1}, "reserved"),
            ({"quantity": 2, "reserved": 3}, "reserved"),
        ],
    )
    def test_invalid_items(self, kwargs, field):
        with pytest.raises(ValidationError) as exc_info:
            InventoryItem.create(**{"product_id": "prod-001", **kwargs})
        assert field in exc_info.value.messages


class TestStockChanges:
    def test_increment_returns_new_item(self):
        item = _item()
        incremented = item.increment(3)
        assert (item.quantity, incremented.quantity) == (5, 8)
        assert incremented.id == item.id

    def test_decrement(self):
        assert _item().decrement(5).quantity == 0

    def test_decrement_below_available(self):
        with pytest.raises(ValidationError):
            _item(reserved=4).decrement(2)

    @pytest.mark.parametrize("amount", [0, -1])
    def test_amounts_must_be_positive(self, amount):
        with pytest.raises(ValidationError):
            _item().increment(amount)

    def test_reserve_and_release(self):
        item = _item().reserve(2)
        assert item.available == 3
        assert item.release(2).reserved == 0

    def test_cannot_release_more_than_reserved(self):
        with pytest.raises(ValidationError):
            _item(reserved=1).release(2)


class TestSetQuantity:
    def test_set_above_current_increments(self):
        assert _item().set_quantity(12).quantity == 12

    def test_set_below_current_decrements(self):
        assert _item().set_quantity(1).quantity == 1

    def test_set_to_current_is_a_no_op(self):
        item = _item()
        assert item.set_quantity(5) is item

    def test_set_cannot_drop_below_reserved(self):
        with pytest.raises(ValidationError):
            _item(reserved=4).set_quantity(2)

    def test_negative_target(self):
        with pytest.raises(ValidationError):
            _item().set_quantity(-1)


class TestAdjust:
    @pytest.mark.parametrize(
        "operation,quantity,expected",
        [(StockOperation.INCREMENT, 2, 7), (StockOperation.DECREMENT, 2, 3), (StockOperation.SET, 9, 9)],
    )
    def test_operations(self, operation, quantity, expected):
        assert _item().adjust(operation, quantity).quantity == expected
