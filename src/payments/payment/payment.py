"""Payment aggregate.

Immutable: each state change returns a new ``Payment`` and goes through
the state machine in ``status.py``. ``order_id``, ``user_id`` and
``amount`` are fixed at creation. A failed payment can be retried up to
``MAX_PAYMENT_RETRIES`` times.
"""

import json
import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text

from shared.domain import evolve

from payments.domain import payments
from payments.payment.status import PaymentStatus, is_terminal, transition

MAX_PAYMENT_RETRIES = 3

_CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


class PaymentMethod(Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    BANK_TRANSFER = "bank_transfer"


def _now() -> datetime:
    return datetime.now(UTC)


@payments.aggregate
class Payment:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(max_length=3, default="USD")
    method = String(choices=PaymentMethod, default=PaymentMethod.CREDIT_CARD.value)
    status = String(choices=PaymentStatus, default=PaymentStatus.PENDING.value)
    correlation_id = String(max_length=255)
    provider_transaction_id = String(max_length=255)
    provider_payload = Text()  # JSON: provider response dict
    failure_reason = String(max_length=500)
    retry_count = Integer(default=0)
    customer_email = String(max_length=255)
    merchant_id = String(max_length=255)
    merchant_webhook_url = String(max_length=2048)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        order_id: str,
        user_id: str,
        amount: float,
        currency: str = "USD",
        method: PaymentMethod | str = PaymentMethod.CREDIT_CARD,
        correlation_id: str | None = None,
        customer_email: str | None = None,
        merchant_id: str | None = None,
        merchant_webhook_url: str | None = None,
    ) -> "Payment":
        currency = (currency or "").upper()
        errors: dict[str, list[str]] = {}
        if amount is None or amount <= 0:
            errors["amount"] = ["Amount must be greater than 0"]
        if not _CURRENCY_PATTERN.match(currency):
            errors["currency"] = ["Currency must be a 3-letter ISO code"]
        if errors:
            raise ValidationError(errors)

        now = _now()
        return cls(
            order_id=order_id,
            user_id=user_id,
            amount=amount,
            currency=currency,
            method=parse_method(method).value,
            status=PaymentStatus.PENDING.value,
            correlation_id=correlation_id,
            customer_email=customer_email,
            merchant_id=merchant_id,
            merchant_webhook_url=merchant_webhook_url,
            created_at=now,
            updated_at=now,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    @property
    def provider_response(self) -> dict[str, Any] | None:
        return json.loads(self.provider_payload) if self.provider_payload else None

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def can_be_modified(self) -> bool:
        return PaymentStatus(self.status) in (PaymentStatus.PENDING, PaymentStatus.PROCESSING)

    def can_be_retried(self) -> bool:
        return PaymentStatus(self.status) == PaymentStatus.FAILED and self.retry_count < MAX_PAYMENT_RETRIES

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def mark_processing(self, provider_transaction_id: str) -> "Payment":
        if not provider_transaction_id or not provider_transaction_id.strip():
            raise ValidationError({"provider_transaction_id": ["Provider transaction id is required"]})
        return self._to(PaymentStatus.PROCESSING, provider_transaction_id=provider_transaction_id)

    def mark_succeeded(self, provider_response: dict[str, Any] | None = None) -> "Payment":
        return self._to(
            PaymentStatus.SUCCEEDED,
            provider_payload=self._payload(provider_response),
            failure_reason=None,
        )

    def mark_failed(self, reason: str, provider_response: dict[str, Any] | None = None) -> "Payment":
        if not reason or not reason.strip():
            raise ValidationError({"failure_reason": ["Failure reason is required"]})
        return self._to(
            PaymentStatus.FAILED,
            failure_reason=reason,
            provider_payload=self._payload(provider_response),
        )

    def cancel(self, reason: str | None = None) -> "Payment":
        return self._to(PaymentStatus.CANCELLED, failure_reason=reason or self.failure_reason)

    def retry(self) -> "Payment":
        if PaymentStatus(self.status) == PaymentStatus.FAILED and self.retry_count >= MAX_PAYMENT_RETRIES:
            raise ValidationError({"retry_count": [f"Maximum of {MAX_PAYMENT_RETRIES} retries reached"]})
        return self._to(
            PaymentStatus.PENDING,
            retry_count=self.retry_count + 1,
            provider_transaction_id=None,
            failure_reason=None,
        )

    def _payload(self, provider_response: dict[str, Any] | None) -> str | None:
        return json.dumps(provider_response) if provider_response else self.provider_payload

    def _to(self, target: PaymentStatus, **changes) -> "Payment":
        status = transition(self.status, target)
        return evolve(self, status=status.value, updated_at=max(_now(), self.updated_at), **changes)


def parse_method(method: PaymentMethod | str | None) -> PaymentMethod:
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(method or PaymentMethod.CREDIT_CARD.value)
    except ValueError:
        raise ValidationError({"method": [f"Unsupported payment method: {method}"]}) from None
