"""FastAPI routes for the Payments service."""

import json

from fastapi import APIRouter, Depends, Query, Request
from shared.api import get_correlation_id, get_principal, service_for
from shared.auth import Principal

from payments.api.schemas import InitiatePaymentRequest, PaymentCallbackRequest, PaymentResponse
from payments.payment.initiation import InitiatePayment
from payments.payment.webhook import RecordProviderCallback

payment_router = APIRouter(prefix="/payments", tags=["payments"])


def _payments(request: Request):
    return service_for(request, "payments")


@payment_router.post("", status_code=202, response_model=PaymentResponse)
async def initiate_payment(
    body: InitiatePaymentRequest,
    request: Request,
    principal: Principal = Depends(get_principal),
    correlation_id: str = Depends(get_correlation_id),
) -> PaymentResponse:
    command = InitiatePayment(
        order_id=body.order_id,
        user_id=principal.user_id,
        amount=body.amount,
        currency=body.currency,
        method=body.method,
        correlation_id=correlation_id,
        customer_email=body.customer_email,
    )
    payment = await _payments(request).initiate_payment(command)
    return PaymentResponse.from_payment(payment)


@payment_router.post("/webhook", response_model=PaymentResponse)
async def payment_callback(body: PaymentCallbackRequest, request: Request) -> PaymentResponse:
    """Provider callback reporting the outcome of a payment."""
    command = RecordProviderCallback(
        payment_id=body.payment_id,
        provider_transaction_id=body.provider_transaction_id,
        status=body.status,
        failure_reason=body.failure_reason,
        provider_response=json.dumps(body.provider_response),
    )
    payment = await _payments(request).record_callback(command)
    return PaymentResponse.from_payment(payment)


@payment_router.get("", response_model=list[PaymentResponse])
async def list_order_payments(
    request: Request, order_id: str = Query(), principal: Principal = Depends(get_principal)
) -> list[PaymentResponse]:
    payments = _payments(request).payments_for_order(principal, order_id)
    return [PaymentResponse.from_payment(payment) for payment in payments]


@payment_router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str, request: Request, principal: Principal = Depends(get_principal)
) -> PaymentResponse:
    return PaymentResponse.from_payment(_payments(request).get_payment(principal, payment_id))


@payment_router.post("/{payment_id}/retry", status_code=202, response_model=PaymentResponse)
async def retry_payment(
    payment_id: str, request: Request, principal: Principal = Depends(get_principal)
) -> PaymentResponse:
    payment = await _payments(request).retry_payment(principal, payment_id)
    return PaymentResponse.from_payment(payment)
