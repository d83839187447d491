"""Inventory lookup by product."""

from protean.exceptions import ObjectNotFoundError

from inventory.domain import inventory
from inventory.stock.stock import InventoryItem


@inventory.repository(part_of=InventoryItem)
class InventoryRepository:
    def find_by_product_id(self, product_id: str) -> InventoryItem | None:
        return self._dao.query.filter(product_id=product_id).all().first

    def get_by_product_id(self, product_id: str) -> InventoryItem:
        item = self.find_by_product_id(product_id)
        if item is None:
            raise ObjectNotFoundError(f"No inventory for product {product_id}")
        return item
