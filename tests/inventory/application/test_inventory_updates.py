"""Application tests for InventoryUpdatesCoordinator — Inventory applies inventory.updated requests."""

import pytest
from protean.exceptions import ValidationError
from shared.events.envelope import EventEnvelope
from shared.events.inventory import INVENTORY_STOCK_CHANGED, INVENTORY_UPDATED
from shared.messaging.outbox import OutboxStatus
from shared.messaging.publisher import ReliablePublisher

from inventory.stock.adjustment import InitializeStock


def _update(operation, quantity, product_id="prod-001", correlation_id="req-inv"):
    return EventEnvelope.create(
        INVENTORY_UPDATED,
        product_id,
        {"productId": product_id, "operation": operation, "quantity": quantity},
        correlation_id=correlation_id,
    )


@pytest.fixture
async def stocked(inventory, admin):
    await inventory.initialize_stock(admin, InitializeStock(product_id="prod-001", quantity=10))
    return inventory


def _quantity(service):
    return service.get_inventory("prod-001").quantity


class TestInventoryUpdated:
    async def test_set_is_applied(self, stocked):
        await stocked.handle(_update("set", 4))
        assert _quantity(stocked) == 4

    async def test_stock_changed_is_derived(self, stocked, published):
        await stocked.handle(_update("increment", 2))

        [envelope] = published(INVENTORY_STOCK_CHANGED)
        assert envelope.correlation_id == "req-inv"
        assert envelope.payload["previousQuantity"] == 10
        assert envelope.payload["quantity"] == 12

    async def test_redelivery_is_applied_once(self, stocked):
        envelope = _update("increment", 2)
        await stocked.handle(envelope)
        await stocked.handle(envelope)
        assert _quantity(stocked) == 12

    async def test_set_to_current_level_is_a_no_op(self, stocked, published):
        await stocked.handle(_update("set", 10))
        assert published(INVENTORY_STOCK_CHANGED) == []

    async def test_unknown_product_is_ignored(self, stocked, published):
        await stocked.handle(_update("increment", 1, product_id="prod-404"))
        assert published(INVENTORY_STOCK_CHANGED) == []

    async def test_insufficient_stock_is_rejected(self, stocked):
        with pytest.raises(ValidationError):
            await stocked.handle(_update("decrement", 50))

    async def test_malformed_operation_is_rejected(self, stocked):
        with pytest.raises(ValidationError):
            await stocked.handle(_update("explode", 1))

    async def test_consumed_from_the_broker(self, stocked, broker, make_settings, eventually):
        publisher = ReliablePublisher(broker, make_settings("ops"))
        await publisher.start()
        await publisher.publish(_update("decrement", 3))

        await eventually(lambda: _quantity(stocked) == 7)
        await publisher.close()


class TestBrokerOutage:
    async def test_update_is_applied_once_and_announced_later(self, stocked, broker, published, eventually):
        broker.fail_connects = 1000
        broker.simulate_connection_loss()
        envelope = _update("decrement", 3)

        await stocked.handle(envelope)
        await stocked.handle(envelope)

        assert _quantity(stocked) == 7
        assert published(INVENTORY_STOCK_CHANGED) == []
        assert stocked.outbox.count_by_status()[OutboxStatus.PENDING.value] == 1

        broker.fail_connects = 0
        await eventually(lambda: stocked.publisher.is_connected)
        await stocked.relay.flush()

        [announced] = published(INVENTORY_STOCK_CHANGED)
        assert announced.payload["previousQuantity"] == 10
        assert announced.payload["quantity"] == 7
        assert _quantity(stocked) == 7
