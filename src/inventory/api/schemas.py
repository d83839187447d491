"""Pydantic request/response schemas for the Inventory API."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from inventory.stock.stock import InventoryItem


class InitializeStockRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=0, default=0)


class AdjustStockRequest(BaseModel):
    operation: Literal["increment", "decrement", "set"]
    quantity: int = Field(ge=0)
    reason: str | None = None


class InventoryResponse(BaseModel):
    product_id: str
    quantity: int
    reserved: int
    available: int
    updated_at: datetime

    @classmethod
    def from_item(cls, item: InventoryItem) -> "InventoryResponse":
        return cls(
            product_id=item.product_id,
            quantity=item.quantity,
            reserved=item.reserved,
            available=item.available,
            updated_at=item.updated_at,
        )
