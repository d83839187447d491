"""Application tests for OrderingEventsCoordinator — Payments reacts to Ordering events.

Covers:
- order.created creates and processes a payment in the order's correlation chain
- a redelivered or re-announced order.created is applied once
- a payment interrupted while PROCESSING is finished on redelivery without a second charge
- order.cancelled cancels unsettled payments only
- malformed payloads are rejected
"""

import pytest
from protean.exceptions import ValidationError
from shared.events.envelope import EventEnvelope
from shared.events.ordering import ORDER_CANCELLED, ORDER_CREATED, OrderCancelled, OrderCreated, OrderItemData
from shared.events.payments import PAYMENT_CANCELLED, PAYMENT_FAILED, PAYMENT_SUCCEEDED

from payments.payment.payment import Payment, PaymentMethod
from payments.payment.status import PaymentStatus


def _order_created(order_id="ord-001", correlation_id="req-1", **overrides):
    payload = OrderCreated(
        order_id=order_id,
        user_id="user-001",
        items=[OrderItemData(product_id="prod-001", product_name="Widget", quantity=2, price_snapshot=25.0)],
        total=50.0,
        customer_email="jane@example.com",
        **overrides,
    )
    return EventEnvelope.create(ORDER_CREATED, order_id, payload, correlation_id=correlation_id)


def _order_cancelled(order_id="ord-001"):
    payload = OrderCancelled(order_id=order_id, user_id="user-001", reason="Changed my mind", cancelled_by="user-001")
    return EventEnvelope.create(ORDER_CANCELLED, order_id, payload, correlation_id="req-2")


class TestOrderCreated:
    async def test_creates_and_settles_payment(self, payments, processor):
        await payments.handle(_order_created())

        [payment] = payments.find_payments("ord-001")
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert payment.amount == 50.0
        assert payment.method == PaymentMethod.CREDIT_CARD.value
        assert payment.correlation_id == "req-1"
        assert payment.customer_email == "jane@example.com"
        assert len(processor.calls) == 1

    async def test_outcome_stays_in_correlation_chain(self, payments, published):
        await payments.handle(_order_created())

        [envelope] = published(PAYMENT_SUCCEEDED)
        assert envelope.correlation_id == "req-1"
        assert envelope.payload["orderId"] == "ord-001"

    async def test_payment_method_from_order(self, payments):
        await payments.handle(_order_created(payment_method="paypal", currency="EUR"))
        [payment] = payments.find_payments("ord-001")
        assert payment.method == PaymentMethod.PAYPAL.value
        assert payment.currency == "EUR"

    async def test_failure_is_announced(self, payments, processor, published):
        processor.configure(should_succeed=False)
        await payments.handle(_order_created())

        [envelope] = published(PAYMENT_FAILED)
        assert envelope.payload["failureReason"] == "Card declined"

    async def test_redelivery_is_applied_once(self, payments, processor, published):
        envelope = _order_created()
        await payments.handle(envelope)
        await payments.handle(envelope)

        assert len(payments.find_payments("ord-001")) == 1
        assert len(processor.calls) == 1
        assert len(published(PAYMENT_SUCCEEDED)) == 1

    async def test_reannounced_order_is_applied_once(self, payments, processor, published):
        await payments.handle(_order_created())
        await payments.handle(_order_created(correlation_id="req-again"))

        assert len(processor.calls) == 1
        assert [e.correlation_id for e in published(PAYMENT_SUCCEEDED)] == ["req-1"]

    async def test_pending_payment_is_resumed(self, payments, store):
        pending = store(Payment.create(order_id="ord-001", user_id="user-001", amount=50.0, correlation_id="req-1"))

        await payments.handle(_order_created())

        assert payments.load(Payment, str(pending.id)).status == PaymentStatus.SUCCEEDED.value
        assert len(payments.find_payments("ord-001")) == 1

    async def test_malformed_payload_is_rejected(self, payments):
        envelope = EventEnvelope.create(ORDER_CREATED, "ord-001", {"orderId": "ord-001"})
        with pytest.raises(ValidationError):
            await payments.handle(envelope)


class TestInterruptedProcessing:
    @pytest.fixture
    def settle_fails_once(self, payments, monkeypatch):
        settle = payments.processing.settle
        failures = []

        def _settle(*args, **kwargs):
            if not failures:
                failures.append(args)
                raise ConnectionError("database went away")
            return settle(*args, **kwargs)

        monkeypatch.setattr(payments.processing, "settle", _settle)
        return failures

    async def test_redelivery_finishes_processing_payment(self, payments, settle_fails_once, published):
        envelope = _order_created()
        with pytest.raises(ConnectionError):
            await payments.handle(envelope)

        [payment] = payments.find_payments("ord-001")
        assert payment.status == PaymentStatus.PROCESSING.value

        await payments.handle(envelope)

        [payment] = payments.find_payments("ord-001")
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert len(published(PAYMENT_SUCCEEDED)) == 1

    async def test_provider_is_asked_again_with_same_key(self, payments, processor, settle_fails_once):
        envelope = _order_created()
        with pytest.raises(ConnectionError):
            await payments.handle(envelope)
        await payments.handle(envelope)

        [payment] = payments.find_payments("ord-001")
        assert [call.idempotency_key for call in processor.calls] == [payment.provider_transaction_id] * 2
        assert len(processor.charges) == 1


class TestOrderCancelled:
    async def test_cancels_pending_payment(self, payments, store, published):
        pending = store(Payment.create(order_id="ord-001", user_id="user-001", amount=50.0))

        await payments.handle(_order_cancelled())

        cancelled = payments.load(Payment, str(pending.id))
        assert cancelled.status == PaymentStatus.CANCELLED.value
        assert cancelled.failure_reason == "Order cancelled: Changed my mind"
        [envelope] = published(PAYMENT_CANCELLED)
        assert envelope.correlation_id == "req-2"

    async def test_settled_payments_are_left_alone(self, payments, published):
        await payments.handle(_order_created())

        await payments.handle(_order_cancelled())

        [payment] = payments.find_payments("ord-001")
        assert payment.status == PaymentStatus.SUCCEEDED.value
        assert published(PAYMENT_CANCELLED) == []

    async def test_order_without_payments(self, payments, published):
        await payments.handle(_order_cancelled("ord-unknown"))
        assert published(PAYMENT_CANCELLED) == []
