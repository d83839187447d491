"""What the Ordering service does with an order whose payment failed.

The default keeps the order in AWAITING_PAYMENT so the customer can
retry, and only records the failure in the order history. Deployments
that prefer to release the order can plug in ``CancelOnPaymentFailure``.
"""

from abc import ABC, abstractmethod

from shared.config import ServiceSettings
from shared.events.payments import PaymentFailed

from ordering.order.payment import CancelOrderAfterPaymentFailure, RecordPaymentFailure


def _failure_fields(failure: PaymentFailed, policy: str, correlation_id: str | None) -> dict:
    return {
        "order_id": failure.order_id,
        "payment_id": failure.payment_id,
        "failure_reason": failure.failure_reason,
        "retry_count": failure.retry_count,
        "amount": failure.amount,
        "currency": failure.currency,
        "policy": policy,
        "correlation_id": correlation_id,
    }


class PaymentFailurePolicy(ABC):
    name: str = ""

    @abstractmethod
    def command_for(self, failure: PaymentFailed, correlation_id: str | None = None):
        """The Ordering command that reacts to ``failure``."""
        ...


class RecordFailureOnly(PaymentFailurePolicy):
    """Leave the order as it is and append a history entry."""

    name = "record_only"

    def command_for(self, failure, correlation_id=None):
        return RecordPaymentFailure(**_failure_fields(failure, self.name, correlation_id))


class CancelOnPaymentFailure(PaymentFailurePolicy):
    """Cancel the order once the payment has failed ``after_retries`` retries.

    Failures below the threshold are only recorded.
    """

    name = "cancel"

    def __init__(self, after_retries: int = 0):
        self.after_retries = after_retries

    def command_for(self, failure, correlation_id=None):
        if failure.retry_count < self.after_retries:
            return RecordPaymentFailure(**_failure_fields(failure, self.name, correlation_id))
        return CancelOrderAfterPaymentFailure(**_failure_fields(failure, self.name, correlation_id))


def build_failure_policy(settings: ServiceSettings) -> PaymentFailurePolicy:
    if settings.payment_failure_policy == CancelOnPaymentFailure.name:
        return CancelOnPaymentFailure(after_retries=settings.payment_failure_cancel_after)
    return RecordFailureOnly()
