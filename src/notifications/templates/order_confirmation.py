"""Order confirmation template — sent when an order is submitted for payment."""

from shared.events.ordering import ORDER_CREATED


class OrderConfirmationTemplate:
    event_type = ORDER_CREATED

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        total = context.get("total", "0.00")
        currency = context.get("currency", "USD")
        item_count = context.get("item_count", 0)
        return {
            "subject": "Order Confirmation",
            "body": (
                f"Your order #{order_id} has been received and is being processed.\n\n"
                f"Order Total: {total} {currency}\n"
                f"Items: {item_count}\n\n"
                "Thank you for your purchase!"
            ),
        }
