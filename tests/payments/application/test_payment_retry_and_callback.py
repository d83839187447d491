"""Application tests for payment retry and provider callbacks."""

import json

import pytest
from protean.exceptions import ObjectNotFoundError, ValidationError
from shared.auth import Principal
from shared.domain import evolve
from shared.events.payments import PAYMENT_FAILED, PAYMENT_SUCCEEDED
from shared.exceptions import ForbiddenError, InvalidTransitionError

from payments.payment.payment import MAX_PAYMENT_RETRIES, Payment
from payments.payment.status import PaymentStatus
from payments.payment.webhook import RecordProviderCallback


@pytest.fixture
def failed_payment(store):
    def _failed(retry_count=0):
        payment = evolve(
            Payment.create(order_id="ord-001", user_id="user-001", amount=60.0, correlation_id="req-1"),
            retry_count=retry_count,
        )
        return store(payment.mark_processing("txn-1").mark_failed("Card declined"))

    return _failed


@pytest.fixture
def pending_payment(store):
    def _pending():
        return store(Payment.create(order_id="ord-001", user_id="user-001", amount=60.0, correlation_id="req-1"))

    return _pending


def _callback(payment_id, **overrides):
    kwargs = {"payment_id": str(payment_id), "provider_transaction_id": "txn-cb", "status": "success", **overrides}
    return RecordProviderCallback(**kwargs)


class TestRetry:
    async def test_retry_processes_again(self, payments, failed_payment, customer, published):
        failed = failed_payment()

        retried = await payments.retry_payment(customer, str(failed.id), wait=True)

        assert retried.retry_count == 1
        settled = payments.load(Payment, str(failed.id))
        assert settled.status == PaymentStatus.SUCCEEDED.value
        assert settled.retry_count == 1
        [envelope] = published(PAYMENT_SUCCEEDED)
        assert envelope.correlation_id == "req-1"

    async def test_retry_gets_a_new_transaction_id(self, payments, failed_payment, customer):
        failed = failed_payment()
        await payments.retry_payment(customer, str(failed.id), wait=True)
        assert payments.load(Payment, str(failed.id)).provider_transaction_id != "txn-1"

    async def test_repeated_failure_reports_retry_count(self, payments, failed_payment, processor, customer, published):
        processor.configure(should_succeed=False)
        failed = failed_payment(retry_count=1)

        await payments.retry_payment(customer, str(failed.id), wait=True)

        [envelope] = published(PAYMENT_FAILED)
        assert envelope.payload["retryCount"] == 2

    async def test_retry_is_scheduled_in_background(self, payments, failed_payment, customer):
        failed = failed_payment()
        retried = await payments.retry_payment(customer, str(failed.id))
        assert retried.status == PaymentStatus.PENDING.value

        await payments.drain_background()
        assert payments.load(Payment, str(failed.id)).status == PaymentStatus.SUCCEEDED.value

    async def test_retry_limit(self, payments, failed_payment, customer):
        failed = failed_payment(retry_count=MAX_PAYMENT_RETRIES)
        with pytest.raises(ValidationError):
            await payments.retry_payment(customer, str(failed.id))

    async def test_only_owner_or_admin(self, payments, failed_payment, admin):
        failed = failed_payment()
        with pytest.raises(ForbiddenError):
            await payments.retry_payment(Principal("user-002"), str(failed.id))
        await payments.retry_payment(admin, str(failed.id), wait=True)

    async def test_cannot_retry_pending_payment(self, payments, pending_payment, customer):
        pending = pending_payment()
        with pytest.raises(InvalidTransitionError):
            await payments.retry_payment(customer, str(pending.id))


class TestCallback:
    async def test_success_callback_on_pending_payment(self, payments, pending_payment, published):
        pending = pending_payment()

        settled = await payments.record_callback(_callback(pending.id, provider_response=json.dumps({"ok": True})))

        assert settled.status == PaymentStatus.SUCCEEDED.value
        assert settled.provider_transaction_id == "txn-cb"
        assert settled.provider_response == {"ok": True}
        [envelope] = published(PAYMENT_SUCCEEDED)
        assert envelope.correlation_id == "req-1"

    async def test_failure_callback(self, payments, pending_payment, published):
        pending = pending_payment()
        settled = await payments.record_callback(_callback(pending.id, status="failure", failure_reason="Fraud"))
        assert settled.status == PaymentStatus.FAILED.value
        assert published(PAYMENT_FAILED)[0].payload["failureReason"] == "Fraud"

    @pytest.mark.parametrize(
        "overrides,field",
        [
            ({"provider_transaction_id": " "}, "provider_transaction_id"),
            ({"status": "maybe"}, "status"),
            ({"status": "failure"}, "failure_reason"),
        ],
    )
    async def test_invalid_callback(self, payments, pending_payment, overrides, field):
        pending = pending_payment()
        with pytest.raises(ValidationError) as exc_info:
            await payments.record_callback(_callback(pending.id, **overrides))
        assert field in exc_info.value.messages

    async def test_callback_for_settled_payment(self, payments, failed_payment):
        failed = failed_payment()
        with pytest.raises(ValidationError):
            await payments.record_callback(_callback(failed.id))

    async def test_callback_for_unknown_payment(self, payments):
        with pytest.raises(ObjectNotFoundError):
            await payments.record_callback(_callback("missing"))
