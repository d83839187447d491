"""Pydantic request/response schemas for the Ordering API.

These are external contracts, kept separate from the commands and the
``Order`` aggregate.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from ordering.order.history import OrderHistory
from ordering.order.order import Order


class OrderItemSchema(BaseModel):
    product_id: str
    product_name: str
    quantity: int = Field(ge=1)
    price_snapshot: float = Field(ge=0)


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class CreateOrderRequest(BaseModel):
    items: list[OrderItemSchema] = Field(min_length=1)
    currency: str = "USD"
    payment_method: str | None = None
    customer_email: str | None = None
    merchant_id: str | None = None
    merchant_webhook_url: str | None = None
    submit_for_payment: bool = True

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {"product_id": "prod-001", "product_name": "Widget", "quantity": 2, "price_snapshot": 25.0}
                    ],
                    "currency": "USD",
                    "payment_method": "credit_card",
                    "customer_email": "jane@example.com",
                }
            ]
        }
    }


class SubmitOrderRequest(BaseModel):
    payment_method: str | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: str
    reason: str | None = None
    payment_reference: str | None = None


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class OrderResponse(BaseModel):
    id: str
    user_id: str
    status: str
    items: list[OrderItemSchema]
    total: float
    currency: str
    payment_reference: str | None = None
    correlation_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            user_id=order.user_id,
            status=order.status,
            items=[OrderItemSchema(**item.to_dict()) for item in order.items],
            total=order.total,
            currency=order.currency,
            payment_reference=order.payment_reference,
            correlation_id=order.correlation_id,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class OrderHistoryResponse(BaseModel):
    id: str
    order_id: str
    old_status: str
    new_status: str
    changed_by: str
    reason: str | None = None
    metadata: dict = Field(default_factory=dict)
    changed_at: datetime

    @classmethod
    def from_entry(cls, entry: OrderHistory) -> "OrderHistoryResponse":
        return cls(
            id=str(entry.id),
            order_id=entry.order_id,
            old_status=entry.old_status,
            new_status=entry.new_status,
            changed_by=entry.changed_by,
            reason=entry.reason,
            metadata=entry.metadata,
            changed_at=entry.changed_at,
        )
