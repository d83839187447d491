"""Order cancellation template — sent when an order is cancelled."""

from shared.events.ordering import ORDER_CANCELLED


class OrderCancellationTemplate:
    event_type = ORDER_CANCELLED

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        reason = context.get("reason")
        reason_line = f"Reason: {reason}\n\n" if reason else ""
        return {
            "subject": "Order Cancelled",
            "body": (
                f"Your order #{order_id} has been cancelled.\n\n"
                f"{reason_line}"
                "If you have any questions, please contact our support team."
            ),
        }
