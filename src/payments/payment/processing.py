"""Payment processing: PENDING → PROCESSING → SUCCEEDED | FAILED.

``StartPaymentProcessing`` assigns the provider transaction id before the
provider is called, and ``SettlePayment`` records the provider's answer
and stages the outcome event. ``PaymentProcessing`` runs the provider
call between the two.

The transaction id doubles as the provider idempotency key. A payment
left PROCESSING by an interrupted run is driven again with the same key,
so the provider answers for the original charge instead of making a new
one.

The provider call is bounded by ``payment_timeout``; a timeout or a
provider error is a failed attempt like any decline.
"""

import asyncio
import json
from uuid import uuid4

import structlog
from protean import handle
from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain

from shared.domain import persist
from shared.messaging.outbox import enqueue

from payments.domain import OutboxMessage, payments
from payments.payment.events import outcome_envelope
from payments.payment.payment import Payment
from payments.payment.status import PaymentStatus
from payments.processor.port import PaymentProcessor, PaymentRequest, ProcessingResult

logger = structlog.get_logger(__name__)

TIMEOUT_REASON = "Payment processing timed out"


@payments.command(part_of="Payment")
class StartPaymentProcessing:
    payment_id = Identifier(required=True)
    provider_transaction_id = String(required=True, max_length=255)


@payments.command(part_of="Payment")
class SettlePayment:
    payment_id = Identifier(required=True)
    success = Boolean(required=True)
    failure_reason = String(max_length=500)
    provider_response = Text()  # JSON: provider response dict
    correlation_id = String(max_length=255)


@payments.command_handler(part_of=Payment)
class PaymentProcessingHandler:
    @handle(StartPaymentProcessing)
    def start_processing(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        persist(repo, payment.mark_processing(command.provider_transaction_id))
        logger.info("Payment processing started", payment_id=str(payment.id), order_id=payment.order_id)
        return str(payment.id)

    @handle(SettlePayment)
    def settle(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)

        # The payment may have been cancelled while the provider was working
        if payment.status != PaymentStatus.PROCESSING.value:
            logger.warning(
                "Payment changed during processing, discarding provider result",
                payment_id=str(payment.id),
                status=payment.status,
                provider_success=command.success,
            )
            return str(payment.id)

        provider_response = json.loads(command.provider_response) if command.provider_response else None
        if command.success:
            settled = payment.mark_succeeded(provider_response)
        else:
            settled = payment.mark_failed(command.failure_reason or "Payment processing failed", provider_response)
        persist(repo, settled)
        logger.info(
            "Payment settled",
            payment_id=str(settled.id),
            order_id=settled.order_id,
            status=settled.status,
            failure_reason=settled.failure_reason,
        )

        enqueue(OutboxMessage, outcome_envelope(settled, command.correlation_id))
        return str(settled.id)


class PaymentProcessing:
    """Drives a payment through the provider for a service."""

    def __init__(self, service, processor: PaymentProcessor, timeout: float):
        self.service = service
        self.processor = processor
        self.timeout = timeout

    async def run(self, payment_id: str, correlation_id: str | None = None) -> Payment:
        """Process a PENDING payment, or finish one an earlier run left PROCESSING.

        ``correlation_id`` is the consumed event's when triggered by
        choreography, so the outcome stays in its correlation chain.
        Settled payments are returned unchanged.
        """
        payment = self.service.load(Payment, payment_id)
        status = PaymentStatus(payment.status)

        if status == PaymentStatus.PENDING:
            self.service.process(
                StartPaymentProcessing(payment_id=payment_id, provider_transaction_id=f"provider-{uuid4()}")
            )
            payment = self.service.load(Payment, payment_id)
        elif status == PaymentStatus.PROCESSING:
            logger.info(
                "Resuming payment left processing",
                payment_id=payment_id,
                provider_transaction_id=payment.provider_transaction_id,
            )
        else:
            logger.info("Payment already settled", payment_id=payment_id, status=payment.status)
            return payment

        result = await self._call_processor(payment)
        self.settle(payment_id, result, correlation_id)
        await self.service.relay.flush()
        return self.service.load(Payment, payment_id)

    def settle(self, payment_id: str, result: ProcessingResult, correlation_id: str | None = None) -> None:
        self.service.process(
            SettlePayment(
                payment_id=payment_id,
                success=result.success,
                failure_reason=result.failure_reason,
                provider_response=json.dumps(result.provider_response) if result.provider_response else None,
                correlation_id=correlation_id,
            )
        )

    async def _call_processor(self, payment: Payment) -> ProcessingResult:
        request = PaymentRequest(
            payment_id=str(payment.id),
            order_id=payment.order_id,
            user_id=payment.user_id,
            amount=payment.amount,
            currency=payment.currency,
            method=payment.method,
            idempotency_key=payment.provider_transaction_id,
        )
        try:
            return await asyncio.wait_for(self.processor.process(request), self.timeout)
        except TimeoutError:
            logger.warning("Payment provider timed out", payment_id=str(payment.id), timeout=self.timeout)
            return ProcessingResult(success=False, failure_reason=TIMEOUT_REASON)
        except Exception as exc:
            logger.error("Payment provider error", payment_id=str(payment.id), error=repr(exc))
            return ProcessingResult(success=False, failure_reason=f"Provider error: {exc}")
