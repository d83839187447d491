"""Inbound event handler — Inventory applies ``inventory.updated`` requests.

The request becomes one ``AdjustStock`` command, so the new stock level
and the staged ``inventory.stock_changed`` commit together and a broker
outage only delays the announcement.
"""

import structlog
from shared.events.envelope import EventEnvelope
from shared.events.inventory import INVENTORY_UPDATED, InventoryUpdated
from shared.messaging.coordinator import Coordinator, handles
from shared.messaging.idempotency import IdempotencyGuard

from inventory.stock.adjustment import AdjustStock

logger = structlog.get_logger(__name__)


class InventoryUpdatesCoordinator(Coordinator):
    consumer_name = "inventory.stock-updates"

    def __init__(self, guard: IdempotencyGuard, service):
        super().__init__(guard)
        self.service = service

    @handles(INVENTORY_UPDATED, aggregate_field="productId")
    async def on_inventory_updated(self, envelope: EventEnvelope) -> None:
        event = envelope.payload_as(InventoryUpdated)
        if self.service.find_item(event.product_id) is None:
            logger.warning("Inventory not found for product, update ignored", product_id=event.product_id)
            return

        self.service.process(
            AdjustStock(
                product_id=event.product_id,
                operation=event.operation.value,
                quantity=event.quantity,
                reason="inventory.updated",
                correlation_id=envelope.correlation_id,
            )
        )
