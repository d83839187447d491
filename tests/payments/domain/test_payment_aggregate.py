"""Tests for the Payment aggregate — creation, validation and immutable transitions."""

import pytest
from protean.exceptions import ValidationError
from shared.domain import evolve
from shared.exceptions import InvalidTransitionError

from payments.payment.payment import MAX_PAYMENT_RETRIES, Payment, PaymentMethod, parse_method
from payments.payment.status import PaymentStatus


def _make_payment(**overrides):
    kwargs = {"order_id": "ord-001", "user_id": "user-001", "amount": 60.0}
    kwargs.update(overrides)
    return Payment.create(**kwargs)


def _failed(retry_count=0):
    payment = evolve(_make_payment(), retry_count=retry_count)
    return payment.mark_processing("txn-1").mark_failed("Card declined")


class TestCreation:
    def test_defaults(self):
        payment = _make_payment()
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.currency == "USD"
        assert payment.method == PaymentMethod.CREDIT_CARD.value
        assert payment.retry_count == 0

    def test_currency_is_normalized(self):
        assert _make_payment(currency="eur").currency == "EUR"

    def test_method_from_string(self):
        assert _make_payment(method="paypal").method == PaymentMethod.PAYPAL.value

    @pytest.mark.parametrize("amount", [0, -5.0])
    def test_amount_must_be_positive(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            _make_payment(amount=amount)
        assert "amount" in exc_info.value.messages

    def test_currency_must_be_iso_code(self):
        with pytest.raises(ValidationError) as exc_info:
            _make_payment(currency="dollars")
        assert "currency" in exc_info.value.messages

    def test_order_and_user_required(self):
        with pytest.raises(ValidationError) as exc_info:
            _make_payment(order_id="", user_id="")
        assert set(exc_info.value.messages) == {"order_id", "user_id"}

    def test_unknown_method(self):
        with pytest.raises(ValidationError):
            parse_method("seashells")


class TestImmutability:
    def test_transition_returns_new_payment(self):
        payment = _make_payment()
        processing = payment.mark_processing("txn-1")
        assert payment.status == PaymentStatus.PENDING.value
        assert processing.status == PaymentStatus.PROCESSING.value
        assert processing.id == payment.id
        assert processing.updated_at >= payment.updated_at


class TestTransitions:
    def test_success_path(self):
        payment = _make_payment().mark_processing("txn-1").mark_succeeded({"provider": "fake"})
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert payment.provider_transaction_id == "txn-1"
        assert payment.provider_response == {"provider": "fake"}
        assert payment.is_terminal

    def test_failure_records_reason(self):
        payment = _failed()
        assert payment.status == PaymentStatus.FAILED.value
        assert payment.failure_reason == "Card declined"

    def test_failure_requires_reason(self):
        with pytest.raises(ValidationError):
            _make_payment().mark_processing("txn-1").mark_failed(" ")

    def test_processing_requires_transaction_id(self):
        with pytest.raises(ValidationError):
            _make_payment().mark_processing("")

    def test_cannot_succeed_without_processing(self):
        with pytest.raises(InvalidTransitionError):
            _make_payment().mark_succeeded()

    def test_cancel_pending(self):
        cancelled = _make_payment().cancel("Order cancelled")
        assert cancelled.status == PaymentStatus.CANCELLED.value
        assert cancelled.failure_reason == "Order cancelled"

    def test_cannot_cancel_succeeded(self):
        succeeded = _make_payment().mark_processing("txn-1").mark_succeeded()
        with pytest.raises(InvalidTransitionError):
            succeeded.cancel()


class TestRetry:
    def test_retry_resets_failure(self):
        retried = _failed().retry()
        assert retried.status == PaymentStatus.PENDING.value
        assert retried.retry_count == 1
        assert retried.failure_reason is None
        assert retried.provider_transaction_id is None

    def test_retry_limit(self):
        payment = _failed(retry_count=MAX_PAYMENT_RETRIES)
        assert not payment.can_be_retried()
        with pytest.raises(ValidationError):
            payment.retry()

    def test_only_failed_payments_can_be_retried(self):
        with pytest.raises(InvalidTransitionError):
            _make_payment().retry()

    def test_modifiable_states(self):
        payment = _make_payment()
        assert payment.can_be_modified()
        assert payment.mark_processing("txn-1").can_be_modified()
        assert not _failed().can_be_modified()
