"""Payment initiation — command and handler.

Creates a PENDING payment. Processing is a separate step: over HTTP it is
scheduled in the background and the caller gets the pending payment back;
the outcome is only observable through later reads and the ``payment.*``
events.
"""

import structlog
from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Float, Identifier, String
from protean.utils.globals import current_domain

from payments.domain import payments
from payments.payment.payment import Payment
from payments.payment.status import PaymentStatus

logger = structlog.get_logger(__name__)


@payments.command(part_of="Payment")
class InitiatePayment:
    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    currency = String(max_length=3, default="USD")
    method = String(max_length=50, default="credit_card")
    correlation_id = String(max_length=255)
    customer_email = String(max_length=255)
    merchant_id = String(max_length=255)
    merchant_webhook_url = String(max_length=2048)


@payments.command_handler(part_of=Payment)
class InitiatePaymentHandler:
    @handle(InitiatePayment)
    def initiate_payment(self, command):
        repo = current_domain.repository_for(Payment)
        existing = repo.find_by_order_id(command.order_id)
        if any(payment.status == PaymentStatus.SUCCEEDED.value for payment in existing):
            raise ValidationError({"order_id": [f"Order '{command.order_id}' already has a successful payment"]})

        payment = Payment.create(
            order_id=command.order_id,
            user_id=command.user_id,
            amount=command.amount,
            currency=command.currency,
            method=command.method,
            correlation_id=command.correlation_id,
            customer_email=command.customer_email,
            merchant_id=command.merchant_id,
            merchant_webhook_url=command.merchant_webhook_url,
        )
        repo.add(payment)
        logger.info("Payment initiated", payment_id=str(payment.id), order_id=payment.order_id, amount=payment.amount)
        return str(payment.id)
