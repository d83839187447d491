"""FastAPI routes for the Ordering service."""

import json

from fastapi import APIRouter, Depends, Query, Request
from shared.api import get_correlation_id, get_principal, service_for
from shared.auth import Principal

from ordering.api.schemas import (
    CreateOrderRequest,
    OrderHistoryResponse,
    OrderItemSchema,
    OrderResponse,
    SubmitOrderRequest,
    UpdateOrderStatusRequest,
)
from ordering.order.creation import CreateOrder, SubmitOrder
from ordering.order.status_update import UpdateOrderStatus

order_router = APIRouter(prefix="/orders", tags=["orders"])


def _ordering(request: Request):
    return service_for(request, "ordering")


@order_router.post("", status_code=201, response_model=OrderResponse)
async def create_order(
    body: CreateOrderRequest,
    request: Request,
    principal: Principal = Depends(get_principal),
    correlation_id: str = Depends(get_correlation_id),
) -> OrderResponse:
    command = CreateOrder(
        user_id=principal.user_id,
        items=json.dumps([item.model_dump() for item in body.items]),
        currency=body.currency,
        payment_method=body.payment_method,
        customer_email=body.customer_email,
        merchant_id=body.merchant_id,
        merchant_webhook_url=body.merchant_webhook_url,
        correlation_id=correlation_id,
        submit_for_payment=body.submit_for_payment,
    )
    order = await _ordering(request).create_order(command)
    return OrderResponse.from_order(order)


@order_router.get("", response_model=list[OrderResponse])
async def list_orders(
    request: Request,
    user_id: str | None = Query(default=None),
    principal: Principal = Depends(get_principal),
) -> list[OrderResponse]:
    orders = _ordering(request).list_user_orders(principal, user_id or principal.user_id)
    return [OrderResponse.from_order(order) for order in orders]


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, request: Request, principal: Principal = Depends(get_principal)) -> OrderResponse:
    return OrderResponse.from_order(_ordering(request).get_order(principal, order_id))


@order_router.get("/{order_id}/history", response_model=list[OrderHistoryResponse])
async def get_order_history(
    order_id: str, request: Request, principal: Principal = Depends(get_principal)
) -> list[OrderHistoryResponse]:
    entries = _ordering(request).order_history(principal, order_id)
    return [OrderHistoryResponse.from_entry(entry) for entry in entries]


@order_router.post("/{order_id}/items", response_model=OrderResponse)
async def add_order_item(
    order_id: str, body: OrderItemSchema, request: Request, principal: Principal = Depends(get_principal)
) -> OrderResponse:
    order = await _ordering(request).add_item(principal, order_id, body.model_dump())
    return OrderResponse.from_order(order)


@order_router.delete("/{order_id}/items/{product_id}", response_model=OrderResponse)
async def remove_order_item(
    order_id: str, product_id: str, request: Request, principal: Principal = Depends(get_principal)
) -> OrderResponse:
    order = await _ordering(request).remove_item(principal, order_id, product_id)
    return OrderResponse.from_order(order)


@order_router.post("/{order_id}/submit", response_model=OrderResponse)
async def submit_order(
    order_id: str,
    request: Request,
    body: SubmitOrderRequest | None = None,
    principal: Principal = Depends(get_principal),
    correlation_id: str = Depends(get_correlation_id),
) -> OrderResponse:
    command = SubmitOrder(
        order_id=order_id,
        submitted_by=principal.user_id,
        payment_method=body.payment_method if body else None,
        correlation_id=correlation_id,
    )
    order = await _ordering(request).submit_order(principal, command)
    return OrderResponse.from_order(order)


@order_router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    request: Request,
    principal: Principal = Depends(get_principal),
    correlation_id: str = Depends(get_correlation_id),
) -> OrderResponse:
    command = UpdateOrderStatus(
        order_id=order_id,
        new_status=body.status,
        changed_by=principal.user_id,
        reason=body.reason,
        payment_reference=body.payment_reference,
        correlation_id=correlation_id,
    )
    order = await _ordering(request).update_status(principal, command)
    return OrderResponse.from_order(order)
