"""Provider callback — command and handler.

Asynchronous providers report the result of a charge through a
callback. A PENDING payment is moved to PROCESSING first so the state
machine is never bypassed.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from shared.domain import persist
from shared.messaging.outbox import enqueue

from payments.domain import OutboxMessage, payments
from payments.payment.events import outcome_envelope
from payments.payment.payment import Payment
from payments.payment.status import PaymentStatus

logger = structlog.get_logger(__name__)


@payments.command(part_of="Payment")
class RecordProviderCallback:
    payment_id = Identifier(required=True)
    provider_transaction_id = String(max_length=255)
    status = String(max_length=20)  # "success" | "failure"
    failure_reason = String(max_length=500)
    provider_response = Text()  # JSON: provider response dict


def _validate(command: RecordProviderCallback) -> None:
    errors: dict[str, list[str]] = {}
    if not command.provider_transaction_id or not command.provider_transaction_id.strip():
        errors["provider_transaction_id"] = ["providerTransactionId is required"]
    if command.status not in ("success", "failure"):
        errors["status"] = ["status must be 'success' or 'failure'"]
    if command.status == "failure" and not command.failure_reason:
        errors["failure_reason"] = ["failureReason is required for failed payments"]
    if errors:
        raise ValidationError(errors)


@payments.command_handler(part_of=Payment)
class ProviderCallbackHandler:
    @handle(RecordProviderCallback)
    def record_callback(self, command):
        _validate(command)
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)

        if not payment.can_be_modified():
            raise ValidationError(
                {"payment_id": [f"Payment is in terminal state '{payment.status}' and cannot be modified"]}
            )

        if payment.status == PaymentStatus.PENDING.value:
            payment = payment.mark_processing(command.provider_transaction_id)

        provider_response = json.loads(command.provider_response) if command.provider_response else None
        if command.status == "success":
            settled = payment.mark_succeeded(provider_response)
        else:
            settled = payment.mark_failed(command.failure_reason, provider_response)

        persist(repo, settled)
        logger.info("Payment callback processed", payment_id=str(settled.id), status=settled.status)

        enqueue(OutboxMessage, outcome_envelope(settled))
        return str(settled.id)
