"""FastAPI routes for the Inventory service."""

from fastapi import APIRouter, Depends, Request
from shared.api import get_correlation_id, get_principal, service_for
from shared.auth import Principal

from inventory.api.schemas import AdjustStockRequest, InitializeStockRequest, InventoryResponse
from inventory.stock.adjustment import AdjustStock, InitializeStock

inventory_router = APIRouter(prefix="/inventory", tags=["inventory"])


def _inventory(request: Request):
    return service_for(request, "inventory")


@inventory_router.post("", status_code=201, response_model=InventoryResponse)
async def initialize_stock(
    body: InitializeStockRequest, request: Request, principal: Principal = Depends(get_principal)
) -> InventoryResponse:
    command = InitializeStock(product_id=body.product_id, quantity=body.quantity)
    item = await _inventory(request).initialize_stock(principal, command)
    return InventoryResponse.from_item(item)


@inventory_router.get("/{product_id}", response_model=InventoryResponse)
async def get_inventory(product_id: str, request: Request) -> InventoryResponse:
    return InventoryResponse.from_item(_inventory(request).get_inventory(product_id))


@inventory_router.post("/{product_id}/adjust", response_model=InventoryResponse)
async def adjust_stock(
    product_id: str,
    body: AdjustStockRequest,
    request: Request,
    principal: Principal = Depends(get_principal),
    correlation_id: str = Depends(get_correlation_id),
) -> InventoryResponse:
    command = AdjustStock(
        product_id=product_id,
        operation=body.operation,
        quantity=body.quantity,
        reason=body.reason,
        correlation_id=correlation_id,
    )
    item = await _inventory(request).adjust_stock(principal, command)
    return InventoryResponse.from_item(item)
