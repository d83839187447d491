"""Event contracts for the Inventory (product stock) service."""

from enum import Enum

from pydantic import Field

from shared.events.envelope import EventPayload

INVENTORY_UPDATED = "inventory.updated"
INVENTORY_STOCK_CHANGED = "inventory.stock_changed"


class StockOperation(Enum):
    INCREMENT = "increment"
    DECREMENT = "decrement"
    SET = "set"


class InventoryUpdated(EventPayload):
    """Request to adjust a product's stock. ``set`` is an absolute target."""

    product_id: str
    operation: StockOperation
    quantity: int = Field(ge=0)
    reason: str | None = None


class StockChanged(EventPayload):
    product_id: str
    previous_quantity: int
    quantity: int
    reserved: int
    available: int
