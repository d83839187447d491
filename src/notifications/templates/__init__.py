"""Template registry — maps customer-facing event types to email templates.

Each template renders a subject and body from the event context.
"""

from notifications.templates.order_cancellation import OrderCancellationTemplate
from notifications.templates.order_confirmation import OrderConfirmationTemplate
from notifications.templates.payment_confirmation import PaymentConfirmationTemplate
from notifications.templates.payment_failed import PaymentFailedTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    template.event_type: template
    for template in (
        OrderConfirmationTemplate,
        PaymentConfirmationTemplate,
        OrderCancellationTemplate,
        PaymentFailedTemplate,
    )
}


def get_template(event_type: str):
    """Look up a template class by event type."""
    template_cls = TEMPLATE_REGISTRY.get(event_type)
    if template_cls is None:
        raise ValueError(f"No template registered for event type: {event_type}")
    return template_cls
