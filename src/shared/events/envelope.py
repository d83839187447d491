"""Domain event envelope: the canonical wire form of every published event.

Wire format (JSON, camelCase)::

    {
        "eventType": "order.created",
        "aggregateId": "ord-123",
        "occurredOn": "2026-01-01T12:00:00Z",
        "correlationId": "req-abc",
        "payload": {...}
    }

The routing key on the topic exchange is ``eventType``. Envelopes are
immutable; follow-up events are built with ``derive()`` so the
correlation id flows unchanged through a causal chain, optionally with a
suffix for a fan-out branch (e.g. ``req-abc-webhook``).
"""

import hashlib
import json
from datetime import UTC, datetime
from typing import Any, TypeVar
from uuid import uuid4

import pydantic
from protean.exceptions import ValidationError
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from shared.exceptions import MessageDecodeError

P = TypeVar("P", bound="EventPayload")


class EventPayload(BaseModel):
    """Base class for typed event payloads. Serialized with camelCase keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class EventEnvelope(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        validate_by_name=True,
        validate_by_alias=True,
    )

    event_type: str = Field(min_length=1, pattern=r"^[a-z0-9_]+(\.[a-z0-9_]+)+$")
    aggregate_id: str = Field(min_length=1)
    occurred_on: datetime = Field(default_factory=lambda: datetime.now(UTC))
    correlation_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(
        cls,
        event_type: str,
        aggregate_id: str,
        payload: EventPayload | dict[str, Any] | None = None,
        correlation_id: str | None = None,
    ) -> "EventEnvelope":
        """Build a new envelope, starting a fresh correlation chain if none is given."""
        return cls(
            event_type=event_type,
            aggregate_id=str(aggregate_id),
            correlation_id=correlation_id or str(uuid4()),
            payload=_payload_dict(payload),
        )

    def derive(
        self,
        event_type: str,
        aggregate_id: str,
        payload: EventPayload | dict[str, Any] | None = None,
        suffix: str | None = None,
    ) -> "EventEnvelope":
        """Build a follow-up event in the same correlation chain."""
        correlation_id = self.correlation_id
        if suffix and correlation_id:
            correlation_id = f"{correlation_id}-{suffix}"
        return EventEnvelope.create(event_type, aggregate_id, payload, correlation_id)

    def payload_as(self, model: type[P]) -> P:
        """Validate the raw payload against a typed payload model."""
        try:
            return model.model_validate(self.payload)
        except pydantic.ValidationError as exc:
            messages: dict[str, list[str]] = {}
            for error in exc.errors():
                field = ".".join(str(part) for part in error["loc"]) or "payload"
                messages.setdefault(field, []).append(error["msg"])
            raise ValidationError(messages) from exc

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    def to_bytes(self) -> bytes:
        return json.dumps(self.to_dict()).encode("utf-8")

    @classmethod
    def from_bytes(cls, body: bytes) -> "EventEnvelope":
        try:
            return cls.model_validate_json(body)
        except (pydantic.ValidationError, ValueError) as exc:
            raise MessageDecodeError(f"Invalid event envelope: {exc}") from exc

    def signature(self) -> str:
        """Stable digest of the envelope contents.

        Identical for every redelivery of the same published message, so it
        serves as the message id and as the idempotency attempt key.
        """
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _payload_dict(payload: EventPayload | dict[str, Any] | None) -> dict[str, Any]:
    if payload is None:
        return {}
    if isinstance(payload, EventPayload):
        return payload.to_dict()
    return dict(payload)
