"""Transactional outbox.

Every domain registers an ``OutboxMessage`` aggregate. A command handler
stages the events it announces with ``enqueue()`` in the same unit of
work as its state change, so an event is recorded exactly when the
change is. ``OutboxRelay`` publishes pending messages in the order they
were staged and prunes published ones after the retention period.
"""

import asyncio
import itertools
from datetime import UTC, datetime, timedelta
from enum import Enum

import structlog
from protean.domain import Domain
from protean.fields import DateTime, Integer, String, Text
from protean.utils.globals import current_domain

from shared.events.envelope import EventEnvelope
from shared.exceptions import PublishUnavailable

logger = structlog.get_logger(__name__)

QUERY_LIMIT = 1000

_sequence = itertools.count(1)


class OutboxStatus(Enum):
    PENDING = "pending"
    PUBLISHED = "published"
    FAILED = "failed"


def register_outbox(domain: Domain):
    """Register the outbox aggregate and its repository with ``domain``."""

    @domain.aggregate
    class OutboxMessage:
        event_type = String(required=True, max_length=100)
        aggregate_id = String(required=True, max_length=255)
        correlation_id = String(max_length=255)
        envelope = Text(required=True)  # JSON wire form
        sequence = Integer(default=0)
        status = String(choices=OutboxStatus, default=OutboxStatus.PENDING.value)
        attempts = Integer(default=0)
        last_error = String(max_length=500)
        created_at = DateTime()
        published_at = DateTime()

        @classmethod
        def for_envelope(cls, envelope: EventEnvelope):
            return cls(
                event_type=envelope.event_type,
                aggregate_id=envelope.aggregate_id,
                correlation_id=envelope.correlation_id,
                envelope=envelope.model_dump_json(by_alias=True),
                sequence=next(_sequence),
                status=OutboxStatus.PENDING.value,
                created_at=datetime.now(UTC),
            )

        def to_envelope(self) -> EventEnvelope:
            return EventEnvelope.model_validate_json(self.envelope)

        def mark_published(self) -> None:
            self.status = OutboxStatus.PUBLISHED.value
            self.attempts += 1
            self.published_at = datetime.now(UTC)

        def record_failed_attempt(self, error: str, max_attempts: int) -> None:
            self.attempts += 1
            self.last_error = error[:500]
            if self.attempts >= max_attempts:
                self.status = OutboxStatus.FAILED.value

    @domain.repository(part_of=OutboxMessage)
    class OutboxRepository:
        def pending(self, limit: int = 100) -> list:
            return (
                self._dao.query.filter(status=OutboxStatus.PENDING.value)
                .order_by("sequence")
                .limit(limit)
                .all()
                .items
            )

        def count_by_status(self) -> dict[str, int]:
            return {
                status.value: self._dao.query.filter(status=status.value).all().total for status in OutboxStatus
            }

        def prune_published(self, before: datetime) -> int:
            published = self._dao.query.filter(status=OutboxStatus.PUBLISHED.value).limit(QUERY_LIMIT).all().items
            stale = [message for message in published if message.published_at and message.published_at < before]
            for message in stale:
                self._dao.delete(message)
            return len(stale)

    return OutboxMessage


def enqueue(message_cls, envelope: EventEnvelope) -> None:
    """Stage ``envelope`` in the current unit of work."""
    current_domain.repository_for(message_cls).add(message_cls.for_envelope(envelope))


class Outbox:
    """One domain's outbox, as seen by the relay and the health check."""

    def __init__(self, domain: Domain, message_cls) -> None:
        self.domain = domain
        self.message_cls = message_cls

    def _repository(self):
        return self.domain.repository_for(self.message_cls)

    def pending(self, limit: int = 100) -> list:
        with self.domain.domain_context():
            return self._repository().pending(limit)

    def count_by_status(self) -> dict[str, int]:
        with self.domain.domain_context():
            return self._repository().count_by_status()

    def mark_published(self, message) -> None:
        with self.domain.domain_context():
            message.mark_published()
            self._repository().add(message)

    def record_failed_attempt(self, message, error: str, max_attempts: int) -> None:
        with self.domain.domain_context():
            message.record_failed_attempt(error, max_attempts)
            self._repository().add(message)

    def prune(self, before: datetime) -> int:
        with self.domain.domain_context():
            return self._repository().prune_published(before)


class OutboxRelay:
    def __init__(self, outbox: Outbox, publisher, max_attempts: int = 10, retention: float = 3600.0) -> None:
        self.outbox = outbox
        self.publisher = publisher
        self.max_attempts = max_attempts
        self.retention = retention
        self._lock = asyncio.Lock()

    async def flush(self, limit: int = 100) -> int:
        """Publish pending messages in order; stops at the first broker failure."""
        async with self._lock:
            published = 0
            for message in self.outbox.pending(limit):
                try:
                    await self.publisher.publish(message.to_envelope())
                except PublishUnavailable as exc:
                    self.outbox.record_failed_attempt(message, str(exc), self.max_attempts)
                    if message.status == OutboxStatus.FAILED.value:
                        logger.error(
                            "Outbox message abandoned after max attempts",
                            outbox_id=message.id,
                            event_type=message.event_type,
                            attempts=message.attempts,
                        )
                    else:
                        logger.warning(
                            "Outbox publish deferred, broker unavailable",
                            outbox_id=message.id,
                            event_type=message.event_type,
                            attempts=message.attempts,
                        )
                    break

                self.outbox.mark_published(message)
                published += 1

            pruned = self.outbox.prune(datetime.now(UTC) - timedelta(seconds=self.retention))
            if published or pruned:
                logger.info("Outbox flushed", published=published, pruned=pruned)
            return published

    async def run(self, interval: float, stop: asyncio.Event) -> None:
        while not stop.is_set():
            await self.flush()
            try:
                await asyncio.wait_for(stop.wait(), interval)
            except TimeoutError:
                continue
