"""RabbitMQ adapter built on aio-pika (install with the ``amqp`` extra).

One connection with one channel per instance. Publisher confirms are
enabled, so ``publish`` returns only after the broker has taken
responsibility for the message; the channel never reports a full buffer
and ``wait_for_drain`` is immediate. Reconnection is driven by
``ConnectionSupervisor``, not by aio-pika's robust connection.
"""

from datetime import UTC, datetime
from typing import Any

import structlog

from shared.messaging.broker import (
    DEFAULT_EXCHANGE,
    Broker,
    BrokerUnavailable,
    CloseCallback,
    Delivery,
    DeliveryCallback,
    MessageProperties,
)

logger = structlog.get_logger(__name__)


class RabbitMQBroker(Broker):
    def __init__(self, url: str, connection_timeout: float = 10.0, heartbeat: int = 60) -> None:
        self._url = url
        self._connection_timeout = connection_timeout
        self._heartbeat = heartbeat
        self._connection = None
        self._channel = None
        self._exchanges: dict[str, Any] = {}
        self._queues: dict[str, Any] = {}
        self._close_callbacks: list[CloseCallback] = []
        self._closing = False

    @property
    def is_connected(self) -> bool:
        return (
            self._connection is not None
            and not self._connection.is_closed
            and self._channel is not None
            and not self._channel.is_closed
        )

    async def connect(self) -> None:
        if self.is_connected:
            return
        import aio_pika

        self._closing = False
        try:
            self._connection = await aio_pika.connect(
                self._url,
                timeout=self._connection_timeout,
                heartbeat=self._heartbeat,
            )
            self._channel = await self._connection.channel(publisher_confirms=True)
        except (aio_pika.exceptions.AMQPError, OSError, TimeoutError) as exc:
            raise BrokerUnavailable(f"Could not connect to RabbitMQ: {exc}") from exc

        self._exchanges.clear()
        self._queues.clear()
        self._connection.close_callbacks.add(self._on_close)
        logger.info("Connected to RabbitMQ")

    async def close(self) -> None:
        self._closing = True
        if self._channel is not None and not self._channel.is_closed:
            await self._channel.close()
        if self._connection is not None and not self._connection.is_closed:
            await self._connection.close()
        self._channel = None
        self._connection = None
        logger.info("Disconnected from RabbitMQ")

    def add_close_callback(self, callback: CloseCallback) -> None:
        if callback not in self._close_callbacks:
            self._close_callbacks.append(callback)

    def _on_close(self, _sender: Any, exc: BaseException | None = None) -> None:
        if self._closing:
            return
        logger.warning("RabbitMQ connection closed unexpectedly", error=str(exc))
        for callback in list(self._close_callbacks):
            callback(exc)

    async def declare_exchange(self, name: str, exchange_type: str = "topic", durable: bool = True) -> None:
        import aio_pika

        channel = self._require_channel()
        exchange = await channel.declare_exchange(
            name, getattr(aio_pika.ExchangeType, exchange_type.upper()), durable=durable
        )
        self._exchanges[name] = exchange

    async def declare_queue(
        self,
        name: str,
        durable: bool = True,
        dead_letter_exchange: str | None = None,
        dead_letter_routing_key: str | None = None,
    ) -> None:
        arguments: dict[str, Any] = {}
        if dead_letter_exchange is not None:
            arguments["x-dead-letter-exchange"] = dead_letter_exchange
        if dead_letter_routing_key is not None:
            arguments["x-dead-letter-routing-key"] = dead_letter_routing_key
        channel = self._require_channel()
        self._queues[name] = await channel.declare_queue(name, durable=durable, arguments=arguments or None)

    async def bind_queue(self, queue: str, exchange: str, routing_key: str) -> None:
        await self._queues[queue].bind(self._exchanges[exchange], routing_key=routing_key)

    async def publish(self, exchange: str, routing_key: str, body: bytes, properties: MessageProperties) -> bool:
        import aio_pika

        channel = self._require_channel()
        message = aio_pika.Message(
            body=body,
            content_type=properties.content_type,
            correlation_id=properties.correlation_id,
            message_id=properties.message_id,
            timestamp=(
                datetime.fromtimestamp(properties.timestamp / 1000, UTC) if properties.timestamp is not None else None
            ),
            headers=properties.headers or None,
            delivery_mode=(
                aio_pika.DeliveryMode.PERSISTENT if properties.persistent else aio_pika.DeliveryMode.NOT_PERSISTENT
            ),
        )
        target = channel.default_exchange if exchange == DEFAULT_EXCHANGE else self._exchanges[exchange]
        try:
            await target.publish(message, routing_key=routing_key)
        except (aio_pika.exceptions.AMQPError, OSError) as exc:
            raise BrokerUnavailable(f"Publish failed: {exc}") from exc
        return True

    async def wait_for_drain(self) -> None:
        return None

    async def consume(self, queue: str, callback: DeliveryCallback, prefetch: int = 1) -> str:
        channel = self._require_channel()
        await channel.set_qos(prefetch_count=prefetch)

        async def _on_message(message) -> None:
            await callback(_to_delivery(message))

        return await self._queues[queue].consume(_on_message)

    async def cancel(self, consumer_tag: str) -> None:
        for queue in self._queues.values():
            try:
                await queue.cancel(consumer_tag)
                return
            except KeyError:
                continue

    async def ack(self, delivery: Delivery) -> None:
        await self._settle(delivery.raw.ack())

    async def nack(self, delivery: Delivery, requeue: bool = False) -> None:
        await self._settle(delivery.raw.nack(requeue=requeue))

    async def _settle(self, operation) -> None:
        import aio_pika

        try:
            await operation
        except (aio_pika.exceptions.AMQPError, OSError) as exc:
            raise BrokerUnavailable(f"Could not settle delivery: {exc}") from exc

    def _require_channel(self):
        if not self.is_connected:
            raise BrokerUnavailable("RabbitMQ channel is not open")
        return self._channel


def _to_delivery(message) -> Delivery:
    timestamp = message.timestamp
    return Delivery(
        body=message.body,
        properties=MessageProperties(
            content_type=message.content_type or "application/json",
            correlation_id=message.correlation_id,
            message_id=message.message_id,
            timestamp=int(timestamp.timestamp() * 1000) if timestamp is not None else None,
            persistent=message.delivery_mode == 2,
            headers=dict(message.headers or {}),
        ),
        exchange=message.exchange or DEFAULT_EXCHANGE,
        routing_key=message.routing_key or "",
        delivery_tag=message.delivery_tag or 0,
        redelivered=bool(message.redelivered),
        raw=message,
    )
