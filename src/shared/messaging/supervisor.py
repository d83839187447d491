"""Supervised broker connection.

Owns the connect/reconnect lifecycle for one role (publisher or
consumer). The initial connect and every reconnect after an unexpected
close retry with exponential backoff until they succeed or the
supervisor is closed; ``on_connected`` re-declares topology and
re-subscribes after each successful connect.
"""

import asyncio
from collections.abc import Awaitable, Callable
from contextlib import suppress

import structlog
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, wait_exponential

from shared.config import ServiceSettings
from shared.messaging.broker import Broker, BrokerUnavailable

logger = structlog.get_logger(__name__)


class ConnectionSupervisor:
    def __init__(
        self,
        broker: Broker,
        settings: ServiceSettings,
        on_connected: Callable[[], Awaitable[None]],
        role: str,
    ) -> None:
        self._broker = broker
        self._settings = settings
        self._on_connected = on_connected
        self._role = role
        self._reconnect_task: asyncio.Task | None = None
        self._closing = False
        self.connected = asyncio.Event()

    @property
    def reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def start(self) -> None:
        self._closing = False
        self._broker.add_close_callback(self._on_connection_closed)
        await self._connect_with_backoff()

    async def close(self) -> None:
        self._closing = True
        self.connected.clear()
        if self._reconnect_task is not None:
            self._reconnect_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._reconnect_task
            self._reconnect_task = None

    def _on_connection_closed(self, error: BaseException | None) -> None:
        self.connected.clear()
        if self._closing:
            return
        logger.warning("Broker connection lost, reconnecting", role=self._role, error=str(error))
        if not self.reconnecting:
            self._reconnect_task = asyncio.get_running_loop().create_task(self._connect_with_backoff())
            self._reconnect_task.add_done_callback(self._reconnect_done)

    async def _connect_with_backoff(self) -> None:
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(BrokerUnavailable),
            wait=wait_exponential(
                multiplier=self._settings.reconnect_delay,
                min=self._settings.reconnect_delay,
                max=self._settings.reconnect_max_delay,
            ),
            before_sleep=self._log_retry,
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                await self._broker.connect()
                await self._on_connected()
        self.connected.set()
        logger.info("Broker connection established", role=self._role)

    def _reconnect_done(self, task: asyncio.Task) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.error("Broker reconnect gave up", role=self._role, error=repr(task.exception()))

    def _log_retry(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        logger.warning(
            "Broker connect attempt failed",
            role=self._role,
            attempt=retry_state.attempt_number,
            next_delay=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(outcome.exception()) if outcome is not None else None,
        )
