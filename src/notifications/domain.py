"""Notifications bounded context — customer emails and merchant webhooks."""

from protean.domain import Domain

from shared.messaging.outbox import register_outbox

notifications = Domain(name="notifications")

OutboxMessage = register_outbox(notifications)
