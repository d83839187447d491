"""Reliable publisher: at-least-once delivery of event envelopes to the
durable topic exchange.

Every message is persistent and carries ``content_type``,
``correlation_id``, ``timestamp`` (epoch ms) and a ``message_id`` derived
from the envelope signature. The routing key is the event type.

A publish only completes once the channel has accepted the message and,
under back-pressure, drained. While the connection is down the caller
waits (bounded by ``publish_timeout``) for the supervisor to reconnect.
When every attempt fails the caller gets ``PublishUnavailable`` and
decides whether that is fatal or deferred to the outbox.
"""

import asyncio
import time

import structlog
from tenacity import AsyncRetrying, RetryError, retry_if_exception_type, stop_after_attempt, wait_none

from shared.config import ServiceSettings
from shared.events.envelope import EventEnvelope
from shared.exceptions import PublishUnavailable
from shared.messaging.broker import Broker, BrokerUnavailable, MessageProperties
from shared.messaging.supervisor import ConnectionSupervisor

logger = structlog.get_logger(__name__)


class ReliablePublisher:
    def __init__(self, broker: Broker, settings: ServiceSettings) -> None:
        self._broker = broker
        self._settings = settings
        self._lock = asyncio.Lock()
        self._supervisor = ConnectionSupervisor(broker, settings, self._declare_topology, role="publisher")
        self._closed = False

    @property
    def is_connected(self) -> bool:
        return self._supervisor.connected.is_set() and self._broker.is_connected

    async def start(self) -> None:
        self._closed = False
        await self._supervisor.start()

    async def close(self) -> None:
        self._closed = True
        await self._supervisor.close()

    async def _declare_topology(self) -> None:
        await self._broker.declare_exchange(self._settings.exchange_name, "topic", durable=True)

    async def publish(self, envelope: EventEnvelope) -> None:
        if self._closed:
            raise PublishUnavailable("Publisher is closed")

        body = envelope.to_bytes()
        properties = MessageProperties(
            content_type="application/json",
            correlation_id=envelope.correlation_id,
            message_id=envelope.signature(),
            timestamp=int(time.time() * 1000),
            persistent=True,
        )

        retrying = AsyncRetrying(
            retry=retry_if_exception_type((BrokerUnavailable, TimeoutError)),
            stop=stop_after_attempt(self._settings.max_publish_attempts),
            wait=wait_none(),
            before_sleep=lambda state: logger.warning(
                "Publish attempt failed",
                event_type=envelope.event_type,
                attempt=state.attempt_number,
                error=str(state.outcome.exception()),
            ),
        )

        async with self._lock:
            try:
                async for attempt in retrying:
                    with attempt:
                        await self._publish_once(envelope.event_type, body, properties)
            except RetryError as exc:
                cause = exc.last_attempt.exception()
                logger.error(
                    "Event publish failed after retries",
                    event_type=envelope.event_type,
                    aggregate_id=envelope.aggregate_id,
                    correlation_id=envelope.correlation_id,
                    attempts=self._settings.max_publish_attempts,
                    error=str(cause),
                )
                raise PublishUnavailable(
                    f"Could not publish {envelope.event_type} for {envelope.aggregate_id}: {cause}"
                ) from cause

        logger.info(
            "Event published",
            event_type=envelope.event_type,
            aggregate_id=envelope.aggregate_id,
            correlation_id=envelope.correlation_id,
        )

    async def _publish_once(self, routing_key: str, body: bytes, properties: MessageProperties) -> None:
        timeout = self._settings.publish_timeout
        if not self.is_connected:
            await asyncio.wait_for(self._supervisor.connected.wait(), timeout)

        flushed = await self._broker.publish(self._settings.exchange_name, routing_key, body, properties)
        if not flushed:
            logger.debug("Channel write buffer full, waiting for drain", routing_key=routing_key)
            await asyncio.wait_for(self._broker.wait_for_drain(), timeout)
