"""Payment confirmation template — sent when an order is paid."""

from shared.events.ordering import ORDER_PAID


class PaymentConfirmationTemplate:
    event_type = ORDER_PAID

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        amount = context.get("amount", "0.00")
        currency = context.get("currency", "USD")
        payment_reference = context.get("payment_reference", "N/A")
        return {
            "subject": "Payment Confirmed",
            "body": (
                f"Your payment for order #{order_id} has been processed successfully.\n\n"
                f"Payment reference: {payment_reference}\n"
                f"Amount: {amount} {currency}\n\n"
                "Thank you!"
            ),
        }
