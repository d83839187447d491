"""Idempotency guard for consumed events.

A record keyed by ``(consumer, aggregate_id, event_type, attempt_key)``
is written (``applied=False``) before a coordinator step runs and flipped
to ``applied=True`` when the step completes. Records are never deleted
during normal operation.

``claim()`` holds a lock per ``(consumer, aggregate_id)`` for the whole
check-apply-mark sequence, so two concurrent deliveries of the same
event cannot both pass the check.
"""

import asyncio
import weakref
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class IdempotencyKey:
    consumer: str
    aggregate_id: str
    event_type: str
    attempt_key: str


@dataclass(frozen=True)
class IdempotencyRecord:
    key: IdempotencyKey
    applied: bool
    created_at: datetime
    applied_at: datetime | None = None


class IdempotencyStore(ABC):
    @abstractmethod
    async def get(self, key: IdempotencyKey) -> IdempotencyRecord | None: ...

    @abstractmethod
    async def put(self, record: IdempotencyRecord) -> None: ...


class InMemoryIdempotencyStore(IdempotencyStore):
    def __init__(self) -> None:
        self._records: dict[IdempotencyKey, IdempotencyRecord] = {}

    async def get(self, key: IdempotencyKey) -> IdempotencyRecord | None:
        return self._records.get(key)

    async def put(self, record: IdempotencyRecord) -> None:
        self._records[record.key] = record

    def __len__(self) -> int:
        return len(self._records)


class IdempotencyGuard:
    def __init__(self, store: IdempotencyStore | None = None) -> None:
        self.store = store or InMemoryIdempotencyStore()
        self._locks: weakref.WeakValueDictionary[tuple[str, str], asyncio.Lock] = weakref.WeakValueDictionary()

    async def should_apply(self, consumer: str, aggregate_id: str, event_type: str, attempt_key: str) -> bool:
        record = await self.store.get(IdempotencyKey(consumer, aggregate_id, event_type, attempt_key))
        return record is None or not record.applied

    async def mark_applied(self, consumer: str, aggregate_id: str, event_type: str, attempt_key: str) -> None:
        key = IdempotencyKey(consumer, aggregate_id, event_type, attempt_key)
        existing = await self.store.get(key)
        now = datetime.now(UTC)
        await self.store.put(
            IdempotencyRecord(
                key=key,
                applied=True,
                created_at=existing.created_at if existing else now,
                applied_at=now,
            )
        )

    def _lock_for(self, consumer: str, aggregate_id: str) -> asyncio.Lock:
        lock = self._locks.get((consumer, aggregate_id))
        if lock is None:
            lock = asyncio.Lock()
            self._locks[(consumer, aggregate_id)] = lock
        return lock

    @asynccontextmanager
    async def claim(
        self, consumer: str, aggregate_id: str, event_type: str, attempt_key: str
    ) -> AsyncIterator[bool]:
        """Serialize and deduplicate one coordinator step.

        Yields True when the step must run. The key is marked applied only
        if the block exits without raising, so a failed step stays retryable.
        """
        lock = self._lock_for(consumer, aggregate_id)
        async with lock:
            key = IdempotencyKey(consumer, aggregate_id, event_type, attempt_key)
            record = await self.store.get(key)
            if record is not None and record.applied:
                logger.info(
                    "Event already applied, skipping",
                    consumer=consumer,
                    aggregate_id=aggregate_id,
                    event_type=event_type,
                )
                yield False
                return

            if record is None:
                await self.store.put(IdempotencyRecord(key=key, applied=False, created_at=datetime.now(UTC)))

            yield True
            await self.mark_applied(consumer, aggregate_id, event_type, attempt_key)
