"""Payment retry — command and handler.

Retries a failed payment (up to MAX_PAYMENT_RETRIES times). The retried
payment is PENDING again and is processed like a new one.
"""

import structlog
from protean import handle
from protean.fields import Identifier
from protean.utils.globals import current_domain

from shared.domain import persist

from payments.domain import payments
from payments.payment.payment import Payment

logger = structlog.get_logger(__name__)


@payments.command(part_of="Payment")
class RetryPayment:
    payment_id = Identifier(required=True)


@payments.command_handler(part_of=Payment)
class RetryPaymentHandler:
    @handle(RetryPayment)
    def retry_payment(self, command):
        repo = current_domain.repository_for(Payment)
        payment = repo.get(command.payment_id)
        retried = payment.retry()
        persist(repo, retried)
        logger.info("Payment retry initiated", payment_id=str(payment.id), retry_count=retried.retry_count)
        return str(payment.id)
