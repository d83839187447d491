"""Inventory bounded context — stock levels per product."""

from protean.domain import Domain

from shared.messaging.outbox import register_outbox

inventory = Domain(name="inventory")

OutboxMessage = register_outbox(inventory)
