"""Pydantic request/response schemas for the Payments API."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from payments.payment.payment import Payment


class InitiatePaymentRequest(BaseModel):
    order_id: str
    amount: float = Field(gt=0)
    currency: str = "USD"
    method: str = "credit_card"
    customer_email: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [{"order_id": "ord-001", "amount": 49.99, "currency": "USD", "method": "credit_card"}]
        }
    }


class PaymentCallbackRequest(BaseModel):
    payment_id: str
    provider_transaction_id: str
    status: Literal["success", "failure"]
    failure_reason: str | None = None
    provider_response: dict[str, Any] = Field(default_factory=dict)


class PaymentResponse(BaseModel):
    id: str
    order_id: str
    user_id: str
    amount: float
    currency: str
    method: str
    status: str
    provider_transaction_id: str | None = None
    failure_reason: str | None = None
    retry_count: int
    correlation_id: str | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_payment(cls, payment: Payment) -> "PaymentResponse":
        return cls(
            id=str(payment.id),
            order_id=payment.order_id,
            user_id=payment.user_id,
            amount=payment.amount,
            currency=payment.currency,
            method=payment.method,
            status=payment.status,
            provider_transaction_id=payment.provider_transaction_id,
            failure_reason=payment.failure_reason,
            retry_count=payment.retry_count,
            correlation_id=payment.correlation_id,
            created_at=payment.created_at,
            updated_at=payment.updated_at,
        )
