"""Event contracts published by the Payments service."""

from shared.events.envelope import EventPayload

PAYMENT_SUCCEEDED = "payment.succeeded"
PAYMENT_FAILED = "payment.failed"
PAYMENT_CANCELLED = "payment.cancelled"


class PaymentSucceeded(EventPayload):
    """Consumed by Ordering to move the order to paid."""

    payment_id: str
    order_id: str
    user_id: str
    amount: float
    currency: str
    provider_transaction_id: str
    customer_email: str | None = None


class PaymentFailed(EventPayload):
    """Consumed by Ordering (failure policy) and Notifications."""

    payment_id: str
    order_id: str
    user_id: str
    amount: float
    currency: str
    failure_reason: str
    retry_count: int = 0
    customer_email: str | None = None
    merchant_id: str | None = None
    merchant_webhook_url: str | None = None


class PaymentCancelled(EventPayload):
    payment_id: str
    order_id: str
    reason: str | None = None
