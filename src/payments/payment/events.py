"""Builders for the events the Payments service publishes."""

from shared.events.envelope import EventEnvelope
from shared.events.payments import (
    PAYMENT_CANCELLED,
    PAYMENT_FAILED,
    PAYMENT_SUCCEEDED,
    PaymentCancelled,
    PaymentFailed,
    PaymentSucceeded,
)

from payments.payment.payment import Payment
from payments.payment.status import PaymentStatus


def payment_succeeded(payment: Payment) -> PaymentSucceeded:
    return PaymentSucceeded(
        payment_id=str(payment.id),
        order_id=payment.order_id,
        user_id=payment.user_id,
        amount=payment.amount,
        currency=payment.currency,
        provider_transaction_id=payment.provider_transaction_id or "",
        customer_email=payment.customer_email,
    )


def payment_failed(payment: Payment) -> PaymentFailed:
    return PaymentFailed(
        payment_id=str(payment.id),
        order_id=payment.order_id,
        user_id=payment.user_id,
        amount=payment.amount,
        currency=payment.currency,
        failure_reason=payment.failure_reason or "Unknown error",
        retry_count=payment.retry_count,
        customer_email=payment.customer_email,
        merchant_id=payment.merchant_id,
        merchant_webhook_url=payment.merchant_webhook_url,
    )


def payment_cancelled(payment: Payment) -> PaymentCancelled:
    return PaymentCancelled(payment_id=str(payment.id), order_id=payment.order_id, reason=payment.failure_reason)


def outcome_envelope(payment: Payment, correlation_id: str | None = None) -> EventEnvelope:
    """Envelope announcing a settled payment, in the payment's correlation chain by default."""
    status = PaymentStatus(payment.status)
    if status == PaymentStatus.SUCCEEDED:
        event_type, payload = PAYMENT_SUCCEEDED, payment_succeeded(payment)
    elif status == PaymentStatus.FAILED:
        event_type, payload = PAYMENT_FAILED, payment_failed(payment)
    elif status == PaymentStatus.CANCELLED:
        event_type, payload = PAYMENT_CANCELLED, payment_cancelled(payment)
    else:
        raise ValueError(f"Payment {payment.id} has no outcome yet ({payment.status})")

    return EventEnvelope.create(
        event_type, str(payment.id), payload, correlation_id=correlation_id or payment.correlation_id
    )
