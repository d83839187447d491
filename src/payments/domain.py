"""Payments bounded context — charging orders through an external provider."""

from protean.domain import Domain

from shared.messaging.outbox import register_outbox

payments = Domain(name="payments")

OutboxMessage = register_outbox(payments)
