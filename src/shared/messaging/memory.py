"""In-process broker with RabbitMQ-like topology semantics.

Supports durable topic exchanges, the default exchange, queue bindings
with ``*``/``#`` patterns, per-consumer prefetch, ack/nack with requeue,
dead-letter routing on reject, and publisher flow control. Test helpers
simulate connection loss, failing reconnects and a full write buffer.
``published`` keeps the most recent ``published_history`` messages.
"""

import asyncio
import itertools
from collections import deque
from dataclasses import dataclass, field, replace

import structlog

from shared.messaging.broker import (
    DEFAULT_EXCHANGE,
    Broker,
    BrokerUnavailable,
    CloseCallback,
    Delivery,
    DeliveryCallback,
    MessageProperties,
    topic_matches,
)

logger = structlog.get_logger(__name__)


@dataclass
class _Message:
    exchange: str
    routing_key: str
    body: bytes
    properties: MessageProperties
    redelivered: bool = False


@dataclass
class _Queue:
    name: str
    durable: bool
    dead_letter_exchange: str | None
    dead_letter_routing_key: str | None
    messages: deque = field(default_factory=deque)


@dataclass
class _Consumer:
    tag: str
    queue: str
    callback: DeliveryCallback
    prefetch: int
    unacked: dict[int, tuple[Delivery, _Message]] = field(default_factory=dict)
    wakeup: asyncio.Event = field(default_factory=asyncio.Event)
    dispatcher: asyncio.Task | None = None
    handlers: set[asyncio.Task] = field(default_factory=set)
    active: bool = True


class InMemoryBroker(Broker):
    def __init__(self, published_history: int = 1000) -> None:
        self._connected = False
        self._exchanges: dict[str, str] = {}
        self._queues: dict[str, _Queue] = {}
        self._bindings: list[tuple[str, str, str]] = []
        self._consumers: dict[str, _Consumer] = {}
        self._close_callbacks: list[CloseCallback] = []
        self._tags = itertools.count(1)
        self._consumer_ids = itertools.count(1)

        self._flow_paused = False
        self._pending: list[_Message] = []
        self._drained = asyncio.Event()
        self._drained.set()

        self.fail_connects = 0
        self.connect_attempts = 0
        self.published: deque[_Message] = deque(maxlen=published_history)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------
    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        if self._connected:
            return
        self.connect_attempts += 1
        if self.fail_connects > 0:
            self.fail_connects -= 1
            raise BrokerUnavailable("Connection refused")
        self._connected = True
        logger.debug("In-memory broker connected")

    async def close(self) -> None:
        if not self._connected:
            return
        for consumer in list(self._consumers.values()):
            self._drop_consumer(consumer)
        self._connected = False
        logger.debug("In-memory broker closed")

    def add_close_callback(self, callback: CloseCallback) -> None:
        if callback not in self._close_callbacks:
            self._close_callbacks.append(callback)

    def simulate_connection_loss(self, error: BaseException | None = None) -> None:
        """Drop the connection as a network failure would; unacked messages are requeued."""
        if not self._connected:
            return
        for consumer in list(self._consumers.values()):
            self._drop_consumer(consumer)
        self._connected = False
        error = error or BrokerUnavailable("Connection reset by peer")
        logger.warning("In-memory broker connection lost", error=str(error))
        for callback in list(self._close_callbacks):
            callback(error)

    # ------------------------------------------------------------------
    # Topology
    # ------------------------------------------------------------------
    async def declare_exchange(self, name: str, exchange_type: str = "topic", durable: bool = True) -> None:
        self._ensure_connected()
        self._exchanges.setdefault(name, exchange_type)

    async def declare_queue(
        self,
        name: str,
        durable: bool = True,
        dead_letter_exchange: str | None = None,
        dead_letter_routing_key: str | None = None,
    ) -> None:
        self._ensure_connected()
        if name not in self._queues:
            self._queues[name] = _Queue(
                name=name,
                durable=durable,
                dead_letter_exchange=dead_letter_exchange,
                dead_letter_routing_key=dead_letter_routing_key,
            )

    async def bind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        self._ensure_connected()
        if queue not in self._queues:
            raise BrokerUnavailable(f"Channel closed: no queue '{queue}'")
        if exchange not in self._exchanges:
            raise BrokerUnavailable(f"Channel closed: no exchange '{exchange}'")
        binding = (exchange, routing_key, queue)
        if binding not in self._bindings:
            self._bindings.append(binding)

    # ------------------------------------------------------------------
    # Publishing
    # ------------------------------------------------------------------
    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        properties: MessageProperties,
    ) -> bool:
        self._ensure_connected()
        if exchange != DEFAULT_EXCHANGE and exchange not in self._exchanges:
            raise BrokerUnavailable(f"Channel closed: no exchange '{exchange}'")

        message = _Message(exchange=exchange, routing_key=routing_key, body=body, properties=properties)
        if self._flow_paused:
            self._pending.append(message)
            return False

        self._route(message)
        return True

    async def wait_for_drain(self) -> None:
        await self._drained.wait()

    def pause_flow(self) -> None:
        """Simulate a full write buffer: publishes are held and report back-pressure."""
        self._flow_paused = True
        self._drained.clear()

    def resume_flow(self) -> None:
        """Flush held publishes and signal drain."""
        self._flow_paused = False
        pending, self._pending = self._pending, []
        for message in pending:
            self._route(message)
        self._drained.set()

    # ------------------------------------------------------------------
    # Consuming
    # ------------------------------------------------------------------
    async def consume(self, queue: str, callback: DeliveryCallback, prefetch: int = 1) -> str:
        self._ensure_connected()
        if queue not in self._queues:
            raise BrokerUnavailable(f"Channel closed: no queue '{queue}'")

        tag = f"ctag-{next(self._consumer_ids)}"
        consumer = _Consumer(tag=tag, queue=queue, callback=callback, prefetch=max(prefetch, 1))
        self._consumers[tag] = consumer
        consumer.dispatcher = asyncio.create_task(self._dispatch(consumer))
        consumer.wakeup.set()
        return tag

    async def cancel(self, consumer_tag: str) -> None:
        consumer = self._consumers.get(consumer_tag)
        if consumer is None:
            return
        consumer.active = False
        if consumer.dispatcher is not None:
            consumer.dispatcher.cancel()

    async def ack(self, delivery: Delivery) -> None:
        consumer, _ = self._settle(delivery)
        consumer.wakeup.set()

    async def nack(self, delivery: Delivery, requeue: bool = False) -> None:
        consumer, message = self._settle(delivery)
        if requeue:
            self._queues[consumer.queue].messages.appendleft(replace(message, redelivered=True))
            self._wake(consumer.queue)
        else:
            self._dead_letter(self._queues[consumer.queue], message)
        consumer.wakeup.set()

    # ------------------------------------------------------------------
    # Inspection helpers
    # ------------------------------------------------------------------
    def queue_depth(self, queue: str) -> int:
        return len(self._queues[queue].messages) if queue in self._queues else 0

    def peek(self, queue: str) -> list[tuple[bytes, MessageProperties]]:
        if queue not in self._queues:
            return []
        return [(message.body, message.properties) for message in self._queues[queue].messages]

    def unacked_count(self, queue: str) -> int:
        return sum(len(c.unacked) for c in self._consumers.values() if c.queue == queue)

    def queue_arguments(self, queue: str) -> dict[str, str | None]:
        declared = self._queues[queue]
        return {
            "x-dead-letter-exchange": declared.dead_letter_exchange,
            "x-dead-letter-routing-key": declared.dead_letter_routing_key,
        }

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _ensure_connected(self) -> None:
        if not self._connected:
            raise BrokerUnavailable("Broker connection is closed")

    def _route(self, message: _Message) -> None:
        self.published.append(message)
        if message.exchange == DEFAULT_EXCHANGE:
            targets = [message.routing_key] if message.routing_key in self._queues else []
        else:
            targets = []
            for exchange, pattern, queue in self._bindings:
                if exchange == message.exchange and queue not in targets and topic_matches(pattern, message.routing_key):
                    targets.append(queue)

        if not targets:
            logger.debug("Unroutable message dropped", exchange=message.exchange, routing_key=message.routing_key)
            return

        for queue in targets:
            self._queues[queue].messages.append(replace(message, redelivered=False))
            self._wake(queue)

    def _dead_letter(self, queue: _Queue, message: _Message) -> None:
        if queue.dead_letter_exchange is None:
            logger.warning("Rejected message discarded, queue has no dead-letter exchange", queue=queue.name)
            return
        headers = {**message.properties.headers, "x-first-death-queue": queue.name}
        self._route(
            _Message(
                exchange=queue.dead_letter_exchange,
                routing_key=queue.dead_letter_routing_key or message.routing_key,
                body=message.body,
                properties=replace(message.properties, headers=headers),
            )
        )

    def _settle(self, delivery: Delivery) -> tuple[_Consumer, _Message]:
        self._ensure_connected()
        consumer = self._consumers.get(delivery.raw)
        if consumer is None or delivery.delivery_tag not in consumer.unacked:
            raise BrokerUnavailable(f"Unknown delivery tag {delivery.delivery_tag}")
        _, message = consumer.unacked.pop(delivery.delivery_tag)
        return consumer, message

    def _wake(self, queue: str) -> None:
        for consumer in self._consumers.values():
            if consumer.queue == queue and consumer.active:
                consumer.wakeup.set()

    def _drop_consumer(self, consumer: _Consumer) -> None:
        if consumer.dispatcher is not None:
            consumer.dispatcher.cancel()
        queue = self._queues[consumer.queue]
        # Unacked messages go back to the head of the queue in original order
        for _, message in reversed(list(consumer.unacked.values())):
            queue.messages.appendleft(replace(message, redelivered=True))
        consumer.unacked.clear()
        self._consumers.pop(consumer.tag, None)

    async def _dispatch(self, consumer: _Consumer) -> None:
        queue = self._queues[consumer.queue]
        while consumer.active:
            await consumer.wakeup.wait()
            consumer.wakeup.clear()
            while consumer.active and queue.messages and len(consumer.unacked) < consumer.prefetch:
                message = queue.messages.popleft()
                delivery = Delivery(
                    body=message.body,
                    properties=message.properties,
                    exchange=message.exchange,
                    routing_key=message.routing_key,
                    delivery_tag=next(self._tags),
                    redelivered=message.redelivered,
                    raw=consumer.tag,
                )
                consumer.unacked[delivery.delivery_tag] = (delivery, message)
                task = asyncio.create_task(consumer.callback(delivery))
                consumer.handlers.add(task)
                task.add_done_callback(self._handler_done(consumer))

    @staticmethod
    def _handler_done(consumer: _Consumer):
        def _done(task: asyncio.Task) -> None:
            consumer.handlers.discard(task)
            if not task.cancelled() and task.exception() is not None:
                logger.error(
                    "Consumer callback raised",
                    consumer_tag=consumer.tag,
                    error=repr(task.exception()),
                )

        return _done
