"""Builders for the events the Inventory service publishes."""

from shared.events.inventory import StockChanged

from inventory.stock.stock import InventoryItem


def stock_changed(before: InventoryItem, after: InventoryItem) -> StockChanged:
    return StockChanged(
        product_id=after.product_id,
        previous_quantity=before.quantity,
        quantity=after.quantity,
        reserved=after.reserved,
        available=after.available,
    )
