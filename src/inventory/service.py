"""Inventory service: the inventory domain, its use cases and the stock-updates coordinator."""

from shared.auth import Principal
from shared.config import ServiceSettings
from shared.messaging.broker import Broker
from shared.messaging.coordinator import Coordinator
from shared.messaging.idempotency import IdempotencyGuard
from shared.service import Service

from inventory.domain import OutboxMessage, inventory
from inventory.stock import repository  # noqa: F401
from inventory.stock.adjustment import AdjustStock, InitializeStock
from inventory.stock.stock import InventoryItem
from inventory.stock.update_events import InventoryUpdatesCoordinator


class InventoryService(Service):
    domain = inventory
    outbox_message = OutboxMessage

    def __init__(
        self,
        settings: ServiceSettings,
        broker: Broker,
        consumer_broker: Broker | None = None,
        guard: IdempotencyGuard | None = None,
    ):
        super().__init__(settings, broker, consumer_broker, guard)
        self.stock_updates = InventoryUpdatesCoordinator(self.guard, self)

    @property
    def coordinators(self) -> list[Coordinator]:
        return [self.stock_updates]

    async def initialize_stock(self, principal: Principal, command: InitializeStock) -> InventoryItem:
        principal.assert_admin()
        await self.execute(command)
        return self.get_inventory(command.product_id)

    async def adjust_stock(self, principal: Principal, command: AdjustStock) -> InventoryItem:
        principal.assert_admin()
        await self.execute(command)
        return self.get_inventory(command.product_id)

    def find_item(self, product_id: str) -> InventoryItem | None:
        with self.repository(InventoryItem) as repo:
            return repo.find_by_product_id(product_id)

    def get_inventory(self, product_id: str) -> InventoryItem:
        with self.repository(InventoryItem) as repo:
            return repo.get_by_product_id(product_id)
