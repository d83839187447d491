"""Per-service runtime context.

A ``Service`` owns everything one service instance needs: its settings,
its Protean domain, its publisher, its idempotency guard, its outbox
relay and, when it consumes events, its consumer. There are no
module-level registries besides the domains themselves; tests and the
runners build services explicitly.

Brokers are closed by whoever created them, after the services using
them have been closed.
"""

import asyncio
from collections import deque
from contextlib import contextmanager

import structlog
from protean.domain import Domain

from shared.config import ServiceSettings
from shared.domain import initialize, process
from shared.events.envelope import EventEnvelope
from shared.messaging.broker import Broker, Delivery
from shared.messaging.consumer import ReliableConsumer
from shared.messaging.coordinator import Coordinator, dispatch_to_all
from shared.messaging.idempotency import IdempotencyGuard
from shared.messaging.outbox import Outbox, OutboxRelay
from shared.messaging.publisher import ReliablePublisher

logger = structlog.get_logger(__name__)


class Service:
    domain: Domain
    outbox_message: type

    def __init__(
        self,
        settings: ServiceSettings,
        broker: Broker,
        consumer_broker: Broker | None = None,
        guard: IdempotencyGuard | None = None,
    ):
        self.settings = settings
        initialize(self.domain)
        self.publisher = ReliablePublisher(broker, settings)
        self.guard = guard or IdempotencyGuard()
        self.outbox = Outbox(self.domain, self.outbox_message)
        self.relay = OutboxRelay(
            self.outbox, self.publisher, settings.outbox_max_attempts, settings.outbox_retention
        )
        self.consumer: ReliableConsumer | None = None
        self.dead_letters: deque[tuple[Delivery, BaseException]] = deque(maxlen=settings.dead_letter_history)
        self._consumer_broker = consumer_broker or broker
        self._background: set[asyncio.Task] = set()

    @property
    def name(self) -> str:
        return self.settings.service_name

    @property
    def coordinators(self) -> list[Coordinator]:
        return []

    @property
    def bindings(self) -> list[str]:
        return [event_type for c in self.coordinators for event_type in c.event_types]

    async def start(self) -> None:
        await self.publisher.start()
        if self.bindings:
            self.consumer = ReliableConsumer(
                self._consumer_broker,
                self.settings,
                self.bindings,
                self.handle,
                on_dead_letter=self._on_dead_letter,
            )
            await self.consumer.start()
        logger.info("Service started", service=self.name, bindings=self.bindings)

    async def close(self) -> None:
        if self.consumer is not None:
            await self.consumer.close()
        await self.drain_background()
        await self.publisher.close()
        logger.info("Service stopped", service=self.name)

    # ------------------------------------------------------------------
    # Domain access
    # ------------------------------------------------------------------
    def process(self, command):
        return process(self.domain, command)

    async def execute(self, command):
        """Process ``command`` and publish what it staged in the outbox."""
        result = self.process(command)
        await self.relay.flush()
        return result

    @contextmanager
    def repository(self, aggregate_cls):
        with self.domain.domain_context():
            yield self.domain.repository_for(aggregate_cls)

    def load(self, aggregate_cls, identifier: str):
        with self.repository(aggregate_cls) as repository:
            return repository.get(identifier)

    # ------------------------------------------------------------------
    # Consumed events
    # ------------------------------------------------------------------
    async def handle(self, envelope: EventEnvelope) -> None:
        await dispatch_to_all(self.coordinators, envelope)
        await self.relay.flush()

    def run_in_background(self, coro) -> asyncio.Task:
        """Schedule work that outlives the request that triggered it."""
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background_done)
        return task

    async def drain_background(self, timeout: float = 10.0) -> None:
        if self._background:
            await asyncio.wait(set(self._background), timeout=timeout)

    def _background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed", service=self.name, error=repr(task.exception()))

    async def _on_dead_letter(self, delivery: Delivery, error: BaseException) -> None:
        self.dead_letters.append((delivery, error))
        logger.critical(
            "Message dead-lettered, operator attention required",
            service=self.name,
            dlq=self.settings.dlq_name,
            routing_key=delivery.routing_key,
            correlation_id=delivery.properties.correlation_id,
            error=repr(error),
        )
