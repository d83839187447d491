"""Payment failure template — sent when a payment attempt is declined."""

from shared.events.payments import PAYMENT_FAILED


class PaymentFailedTemplate:
    event_type = PAYMENT_FAILED

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        reason = context.get("failure_reason", "Unknown error")
        amount = context.get("amount", "0.00")
        currency = context.get("currency", "USD")
        return {
            "subject": "Payment Failed",
            "body": (
                f"Unfortunately, your payment for order #{order_id} could not be processed.\n\n"
                f"Reason: {reason}\n"
                f"Amount: {amount} {currency}\n\n"
                "Please try again or use a different payment method."
            ),
        }
