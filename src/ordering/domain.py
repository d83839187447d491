"""Ordering bounded context — order lifecycle and payment outcome handling."""

from protean.domain import Domain

from shared.messaging.outbox import register_outbox

ordering = Domain(name="ordering")

OutboxMessage = register_outbox(ordering)
