"""Application tests for payment initiation and processing.

Covers:
- initiation returns a pending payment and processes it in the background
- processing outcomes: success, decline, provider timeout, provider error
- a payment cancelled while the provider works keeps its cancellation
- payment.* outcome events carry the payment's correlation id
"""

import asyncio

import pytest
from protean.exceptions import ValidationError
from shared.events.payments import PAYMENT_FAILED, PAYMENT_SUCCEEDED

from payments.payment.initiation import InitiatePayment
from payments.payment.payment import Payment
from payments.payment.processing import TIMEOUT_REASON
from payments.payment.status import PaymentStatus
from payments.processor.port import PaymentProcessor


def _command(**overrides):
    kwargs = {"order_id": "ord-001", "user_id": "user-001", "amount": 60.0, "correlation_id": "req-1"}
    kwargs.update(overrides)
    return InitiatePayment(**kwargs)


class _BrokenProcessor(PaymentProcessor):
    async def process(self, request):
        raise ConnectionError("provider unreachable")


class _CardOnlyProcessor(PaymentProcessor):
    async def process(self, request):
        raise AssertionError("not called")

    def supports(self, method):
        return method == "credit_card"


def _stored(service, payment):
    return service.load(Payment, str(payment.id))


class TestInitiation:
    async def test_returns_pending_payment(self, payments):
        payment = await payments.initiate_payment(_command())
        assert payment.status == PaymentStatus.PENDING.value
        assert payment.amount == 60.0

    async def test_processes_in_background(self, payments, processor):
        payment = await payments.initiate_payment(_command())
        await payments.drain_background()

        assert _stored(payments, payment).status == PaymentStatus.SUCCEEDED.value
        assert [call.payment_id for call in processor.calls] == [str(payment.id)]

    async def test_wait_processes_before_returning(self, payments):
        payment = await payments.initiate_payment(_command(), wait=True)
        assert _stored(payments, payment).status == PaymentStatus.SUCCEEDED.value

    async def test_unsupported_method(self, payments):
        payments.processing.processor = _CardOnlyProcessor()
        with pytest.raises(ValidationError) as exc_info:
            await payments.initiate_payment(_command(method="paypal"), wait=True)
        assert "method" in exc_info.value.messages
        assert payments.find_payments("ord-001") == []

    async def test_unknown_method(self, payments):
        with pytest.raises(ValidationError):
            await payments.initiate_payment(_command(method="seashells"))

    async def test_order_already_paid(self, payments):
        await payments.initiate_payment(_command(), wait=True)
        with pytest.raises(ValidationError) as exc_info:
            await payments.initiate_payment(_command(), wait=True)
        assert "order_id" in exc_info.value.messages


class TestProcessingOutcomes:
    async def test_success_is_announced(self, payments, published):
        payment = await payments.initiate_payment(_command(), wait=True)

        [envelope] = published(PAYMENT_SUCCEEDED)
        assert envelope.aggregate_id == str(payment.id)
        assert envelope.correlation_id == "req-1"
        assert envelope.payload["orderId"] == "ord-001"
        assert envelope.payload["providerTransactionId"].startswith("provider-")

    async def test_provider_call_uses_transaction_id_as_idempotency_key(self, payments, processor):
        payment = await payments.initiate_payment(_command(), wait=True)
        [call] = processor.calls
        assert call.idempotency_key == _stored(payments, payment).provider_transaction_id

    async def test_decline_is_announced(self, payments, processor, published):
        processor.configure(should_succeed=False, failure_reason="Insufficient funds")
        payment = await payments.initiate_payment(_command(), wait=True)

        failed = _stored(payments, payment)
        assert failed.status == PaymentStatus.FAILED.value
        assert failed.failure_reason == "Insufficient funds"
        [envelope] = published(PAYMENT_FAILED)
        assert envelope.payload["failureReason"] == "Insufficient funds"
        assert envelope.payload["retryCount"] == 0

    async def test_timeout_fails_the_payment(self, make_payments, processor, published):
        service = await make_payments(payment_timeout=0.05)
        processor.configure(delay=1.0)

        payment = await service.initiate_payment(_command(), wait=True)

        failed = _stored(service, payment)
        assert failed.status == PaymentStatus.FAILED.value
        assert failed.failure_reason == TIMEOUT_REASON
        assert len(published(PAYMENT_FAILED)) == 1

    async def test_provider_error_fails_the_payment(self, payments):
        payments.processing.processor = _BrokenProcessor()

        payment = await payments.initiate_payment(_command(), wait=True)

        failed = _stored(payments, payment)
        assert failed.status == PaymentStatus.FAILED.value
        assert "provider unreachable" in failed.failure_reason

    async def test_cancellation_during_processing_wins(self, payments, processor, store, published):
        processor.configure(delay=0.1)
        payment = await payments.initiate_payment(_command())
        await asyncio.sleep(0.02)

        processing = _stored(payments, payment)
        assert processing.status == PaymentStatus.PROCESSING.value
        store(processing.cancel("Order cancelled"))
        await payments.drain_background()

        assert _stored(payments, payment).status == PaymentStatus.CANCELLED.value
        assert published(PAYMENT_SUCCEEDED) == []
