"""Reliable consumer: prefetch-bounded delivery with retry and dead-lettering.

Topology declared on every (re)connect:

* the shared durable DLQ
* the service's durable queue, dead-lettering through the default
  exchange to the DLQ
* one binding per routing-key pattern on the topic exchange

Outcome per message:

* undecodable body            -> reject to DLQ
* handler succeeds            -> ack
* InvalidTransitionError      -> logged anomaly, ack
* Forbidden / Validation / ObjectNotFound -> reject to DLQ
* anything else               -> republish with ``x-retry-count + 1`` after
  a backoff delay while below ``max_retries``, else reject to DLQ and
  alert the operator hook
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError

from shared.config import ServiceSettings
from shared.events.envelope import EventEnvelope
from shared.exceptions import (
    ConsumerHandlerError,
    ForbiddenError,
    InvalidTransitionError,
    MessageDecodeError,
    error_details,
)
from shared.messaging.broker import (
    DEFAULT_EXCHANGE,
    RETRY_COUNT_HEADER,
    Broker,
    BrokerUnavailable,
    Delivery,
)
from shared.messaging.supervisor import ConnectionSupervisor

logger = structlog.get_logger(__name__)

EventHandler = Callable[[EventEnvelope], Awaitable[None]]
DeadLetterHook = Callable[[Delivery, BaseException], Awaitable[None]]

NON_RETRIABLE_ERRORS = (ForbiddenError, ValidationError, ObjectNotFoundError)


class ReliableConsumer:
    def __init__(
        self,
        broker: Broker,
        settings: ServiceSettings,
        bindings: Iterable[str],
        handler: EventHandler,
        on_dead_letter: DeadLetterHook | None = None,
        drain_timeout: float = 5.0,
    ) -> None:
        self._broker = broker
        self._settings = settings
        self._bindings = list(bindings)
        self._handler = handler
        self._on_dead_letter = on_dead_letter
        self._drain_timeout = drain_timeout
        self._consumer_tag: str | None = None
        self._in_flight: set[asyncio.Task] = set()
        self._supervisor = ConnectionSupervisor(broker, settings, self._setup, role="consumer")

    @property
    def queue_name(self) -> str:
        return self._settings.queue_name

    @property
    def is_connected(self) -> bool:
        return self._supervisor.connected.is_set()

    async def start(self) -> None:
        await self._supervisor.start()

    async def close(self) -> None:
        """Stop consuming and wait, best-effort, for in-flight handlers to settle."""
        if self._consumer_tag is not None and self._broker.is_connected:
            await self._broker.cancel(self._consumer_tag)
        self._consumer_tag = None

        if self._in_flight:
            _, pending = await asyncio.wait(set(self._in_flight), timeout=self._drain_timeout)
            if pending:
                logger.warning("Consumer closed with handlers still running", queue=self.queue_name, pending=len(pending))
        await self._supervisor.close()
        logger.info("Consumer closed", queue=self.queue_name)

    async def _setup(self) -> None:
        settings = self._settings
        await self._broker.declare_exchange(settings.exchange_name, "topic", durable=True)
        await self._broker.declare_queue(settings.dlq_name, durable=True)
        await self._broker.declare_queue(
            settings.queue_name,
            durable=True,
            dead_letter_exchange=DEFAULT_EXCHANGE,
            dead_letter_routing_key=settings.dlq_name,
        )
        for routing_key in self._bindings:
            await self._broker.bind_queue(settings.queue_name, settings.exchange_name, routing_key)

        self._consumer_tag = await self._broker.consume(
            settings.queue_name, self._on_message, prefetch=settings.prefetch_count
        )
        logger.info(
            "Consumer started",
            queue=settings.queue_name,
            bindings=self._bindings,
            prefetch=settings.prefetch_count,
        )

    async def _on_message(self, delivery: Delivery) -> None:
        task = asyncio.current_task()
        if task is not None:
            self._in_flight.add(task)
        try:
            await self._process(delivery)
        except BrokerUnavailable as exc:
            # The broker requeues unsettled messages once the channel is gone
            logger.warning("Could not settle message, broker unavailable", queue=self.queue_name, error=str(exc))
        finally:
            if task is not None:
                self._in_flight.discard(task)

    async def _process(self, delivery: Delivery) -> None:
        try:
            envelope = EventEnvelope.from_bytes(delivery.body)
        except MessageDecodeError as exc:
            logger.error("Undecodable message rejected to DLQ", queue=self.queue_name, error=str(exc))
            await self._broker.nack(delivery, requeue=False)
            await self._notify_dead_letter(delivery, exc)
            return

        with structlog.contextvars.bound_contextvars(
            correlation_id=envelope.correlation_id,
            event_type=envelope.event_type,
            aggregate_id=envelope.aggregate_id,
            retry_count=delivery.retry_count,
        ):
            try:
                await self._handler(envelope)
            except InvalidTransitionError as exc:
                logger.warning("Stale or out-of-order event acknowledged", error=str(exc))
                await self._broker.ack(delivery)
                return
            except NON_RETRIABLE_ERRORS as exc:
                logger.error(
                    "Non-retriable handler error, rejecting to DLQ",
                    error=error_details(exc),
                    error_type=type(exc).__name__,
                )
                await self._broker.nack(delivery, requeue=False)
                await self._notify_dead_letter(delivery, exc)
                return
            except Exception as exc:
                await self._handle_failure(delivery, ConsumerHandlerError(envelope.event_type, exc))
                return

            await self._broker.ack(delivery)
            logger.debug("Message acknowledged")

    async def _handle_failure(self, delivery: Delivery, error: ConsumerHandlerError) -> None:
        retry_count = delivery.retry_count
        if retry_count < self._settings.max_retries:
            delay = self._settings.retry_delay * 2**retry_count
            logger.warning(
                "Handler failed, scheduling retry",
                attempt=retry_count + 1,
                max_retries=self._settings.max_retries,
                delay=delay,
                error=error_details(error.cause),
            )
            await asyncio.sleep(delay)
            headers = {**delivery.properties.headers, RETRY_COUNT_HEADER: retry_count + 1}
            flushed = await self._broker.publish(
                DEFAULT_EXCHANGE,
                self.queue_name,
                delivery.body,
                replace(delivery.properties, headers=headers),
            )
            if not flushed:
                await self._broker.wait_for_drain()
            await self._broker.ack(delivery)
            return

        logger.error(
            "Retries exhausted, message dead-lettered",
            retries=retry_count,
            dlq=self._settings.dlq_name,
            error=error_details(error.cause),
            exc_info=error.cause,
        )
        await self._broker.nack(delivery, requeue=False)
        await self._notify_dead_letter(delivery, error)

    async def _notify_dead_letter(self, delivery: Delivery, error: BaseException) -> None:
        if self._on_dead_letter is not None:
            await self._on_dead_letter(delivery, error)
