"""Choreography coordinator base class.

A service subclasses ``Coordinator`` and marks one method per consumed
event type with ``@handles``. ``dispatch`` runs the matching method inside
an idempotency claim, so a redelivered envelope is skipped and concurrent
deliveries for the same aggregate run one at a time.

    class PaymentEventsCoordinator(Coordinator):
        consumer_name = "ordering.payment-events"

        @handles("payment.succeeded", aggregate_field="orderId", attempt_fields=("paymentId",))
        async def on_payment_succeeded(self, envelope): ...

Coordinator steps issue Protean commands against their service's domain;
the service publishes whatever the commands staged in the outbox once
the step returns.
"""

from collections.abc import Callable

import structlog

from shared.events.envelope import EventEnvelope
from shared.messaging.idempotency import IdempotencyGuard

logger = structlog.get_logger(__name__)


def handles(event_type: str, aggregate_field: str | None = None, attempt_fields: tuple[str, ...] = ()) -> Callable:
    """Register a coordinator method for an event type.

    ``aggregate_field`` names the payload field holding the id of the
    aggregate the step mutates; by default the envelope's aggregate id.
    ``attempt_fields`` name the payload fields that identify one
    occurrence of the event. An event announced again for the same
    occurrence, with a new timestamp, then maps to the same idempotency
    key. Without them the envelope signature is the key.
    """

    def decorator(fn: Callable) -> Callable:
        fn._handles = (event_type, aggregate_field, tuple(attempt_fields))
        return fn

    return decorator


def attempt_key_for(envelope: EventEnvelope, attempt_fields: tuple[str, ...]) -> str:
    if attempt_fields and all(envelope.payload.get(name) is not None for name in attempt_fields):
        return ":".join(str(envelope.payload[name]) for name in attempt_fields)
    return envelope.signature()


class Coordinator:
    consumer_name: str = ""

    _handlers: dict[str, tuple[str, str | None, tuple[str, ...]]] = {}

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        handlers = {}
        for base in reversed(cls.__mro__):
            for name, attr in vars(base).items():
                spec = getattr(attr, "_handles", None)
                if spec is not None:
                    event_type, aggregate_field, attempt_fields = spec
                    handlers[event_type] = (name, aggregate_field, attempt_fields)
        cls._handlers = handlers

    def __init__(self, guard: IdempotencyGuard) -> None:
        self.guard = guard

    @property
    def event_types(self) -> list[str]:
        return list(self._handlers)

    async def __call__(self, envelope: EventEnvelope) -> None:
        await self.dispatch(envelope)

    async def dispatch(self, envelope: EventEnvelope, attempt_key: str | None = None) -> None:
        entry = self._handlers.get(envelope.event_type)
        if entry is None:
            logger.info("No handler for event type, ignoring", consumer=self.consumer_name, event_type=envelope.event_type)
            return

        method_name, aggregate_field, attempt_fields = entry
        aggregate_id = envelope.aggregate_id
        if aggregate_field and envelope.payload.get(aggregate_field):
            aggregate_id = str(envelope.payload[aggregate_field])

        async with self.guard.claim(
            self.consumer_name,
            aggregate_id,
            envelope.event_type,
            attempt_key or attempt_key_for(envelope, attempt_fields),
        ) as should_apply:
            if not should_apply:
                return
            await getattr(self, method_name)(envelope)


async def dispatch_to_all(coordinators: list[Coordinator], envelope: EventEnvelope) -> None:
    """Fan one consumed envelope out to every coordinator of a service."""
    for coordinator in coordinators:
        if envelope.event_type in coordinator.event_types:
            await coordinator.dispatch(envelope)
