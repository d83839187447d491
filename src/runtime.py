"""Service construction shared by the HTTP app factory and the worker runner.

Every service gets its own ``ServiceSettings`` and ``Service`` instance.
With ``memory://`` all services in the process share one in-memory
broker; with ``amqp://`` each service opens one connection for
publishing and one for consuming.
"""

import asyncio
from dataclasses import dataclass, field

import structlog

from shared.config import ServiceSettings
from shared.messaging.broker import Broker
from shared.messaging.memory import InMemoryBroker
from shared.messaging.rabbitmq import RabbitMQBroker
from shared.service import Service

logger = structlog.get_logger(__name__)

SERVICE_NAMES = ("ordering", "payments", "inventory", "notifications")


def _service_class(name: str) -> type[Service]:
    if name == "ordering":
        from ordering.service import OrderingService

        return OrderingService
    elif name == "payments":
        from payments.service import PaymentsService

        return PaymentsService
    elif name == "inventory":
        from inventory.service import InventoryService

        return InventoryService
    elif name == "notifications":
        from notifications.service import NotificationsService

        return NotificationsService
    else:
        raise ValueError(f"Unknown service: {name}")


@dataclass
class Runtime:
    services: list[Service] = field(default_factory=list)
    brokers: list[Broker] = field(default_factory=list)
    _relays: list[asyncio.Task] = field(default_factory=list)
    _stop: asyncio.Event = field(default_factory=asyncio.Event)

    async def start(self, relay_interval: float | None = None) -> None:
        """Start every service and, given an interval, its outbox relay."""
        self._stop.clear()
        for service in self.services:
            await service.start()
            if relay_interval:
                self._relays.append(
                    asyncio.create_task(
                        service.relay.run(relay_interval, self._stop), name=f"{service.name}-outbox-relay"
                    )
                )

    async def close(self) -> None:
        self._stop.set()
        results = await asyncio.gather(*self._relays, return_exceptions=True)
        for task, result in zip(self._relays, results):
            if isinstance(result, BaseException):
                logger.error("Outbox relay failed", task=task.get_name(), error=repr(result))
        self._relays.clear()
        for service in reversed(self.services):
            await service.close()
        for broker in self.brokers:
            await broker.close()


def build_runtime(names: list[str] | tuple[str, ...], **overrides) -> Runtime:
    """Build the named services from ``SHOPFLOW_*`` settings.

    ``overrides`` are passed to every ``ServiceSettings``; ``service_name``
    is always the service's own name.
    """
    runtime = Runtime()
    shared_memory: InMemoryBroker | None = None

    for name in names:
        settings = ServiceSettings(**{**overrides, "service_name": name})
        if settings.broker_url.startswith("memory://"):
            if shared_memory is None:
                shared_memory = InMemoryBroker()
                runtime.brokers.append(shared_memory)
            service = _service_class(name)(settings, shared_memory)
        else:
            publisher_broker = RabbitMQBroker(settings.broker_url)
            consumer_broker = RabbitMQBroker(settings.broker_url)
            runtime.brokers.extend([consumer_broker, publisher_broker])
            service = _service_class(name)(settings, publisher_broker, consumer_broker)
        runtime.services.append(service)

    return runtime
