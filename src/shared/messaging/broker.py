"""Message broker port.

The reliable publisher and consumer only talk to this interface. Two
adapters exist: ``InMemoryBroker`` (in-process, used by tests and single
process deployments) and ``RabbitMQBroker`` (AMQP via aio-pika).
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from shared.exceptions import ShopflowError

RETRY_COUNT_HEADER = "x-retry-count"
DEFAULT_EXCHANGE = ""


class BrokerUnavailable(ShopflowError, ConnectionError):
    """The broker connection is down or could not be established."""


@dataclass(frozen=True)
class MessageProperties:
    """AMQP basic properties relevant to Shopflow messages."""

    content_type: str = "application/json"
    correlation_id: str | None = None
    message_id: str | None = None
    timestamp: int | None = None  # epoch milliseconds
    persistent: bool = True
    headers: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Delivery:
    """A message handed to a consumer callback, pending ack or nack."""

    body: bytes
    properties: MessageProperties
    exchange: str
    routing_key: str
    delivery_tag: int
    redelivered: bool = False
    raw: Any = None

    @property
    def retry_count(self) -> int:
        try:
            return int(self.properties.headers.get(RETRY_COUNT_HEADER, 0))
        except (TypeError, ValueError):
            return 0


DeliveryCallback = Callable[[Delivery], Awaitable[None]]
CloseCallback = Callable[[BaseException | None], None]


class Broker(ABC):
    """Abstract message broker connection with one channel."""

    @property
    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    async def connect(self) -> None:
        """Open the connection and channel. Raises ``BrokerUnavailable`` on failure."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the channel, then the connection."""
        ...

    @abstractmethod
    def add_close_callback(self, callback: CloseCallback) -> None:
        """Register a callback fired when the connection is lost unexpectedly."""
        ...

    @abstractmethod
    async def declare_exchange(self, name: str, exchange_type: str = "topic", durable: bool = True) -> None: ...

    @abstractmethod
    async def declare_queue(
        self,
        name: str,
        durable: bool = True,
        dead_letter_exchange: str | None = None,
        dead_letter_routing_key: str | None = None,
    ) -> None: ...

    @abstractmethod
    async def bind_queue(self, queue: str, exchange: str, routing_key: str) -> None: ...

    @abstractmethod
    async def publish(
        self,
        exchange: str,
        routing_key: str,
        body: bytes,
        properties: MessageProperties,
    ) -> bool:
        """Hand a message to the channel.

        Returns False when the channel accepted the message but its write
        buffer is full; callers must ``wait_for_drain()`` before treating
        the publish as complete.
        """
        ...

    @abstractmethod
    async def wait_for_drain(self) -> None: ...

    @abstractmethod
    async def consume(self, queue: str, callback: DeliveryCallback, prefetch: int = 1) -> str:
        """Start consuming; returns the consumer tag."""
        ...

    @abstractmethod
    async def cancel(self, consumer_tag: str) -> None: ...

    @abstractmethod
    async def ack(self, delivery: Delivery) -> None: ...

    @abstractmethod
    async def nack(self, delivery: Delivery, requeue: bool = False) -> None: ...


def topic_matches(pattern: str, routing_key: str) -> bool:
    """AMQP topic matching: ``*`` is exactly one word, ``#`` is zero or more."""
    return _match(pattern.split("."), routing_key.split("."))


def _match(pattern: list[str], words: list[str]) -> bool:
    if not pattern:
        return not words
    head, rest = pattern[0], pattern[1:]
    if head == "#":
        return any(_match(rest, words[i:]) for i in range(len(words) + 1))
    if not words:
        return False
    if head == "*" or head == words[0]:
        return _match(rest, words[1:])
    return False
