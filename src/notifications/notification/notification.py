"""Notification aggregate — one message to one recipient over one channel.

Immutable. Notifications are created reactively from Ordering and
Payments events and delivered through a ``NotificationProvider``. A
failed notification can be retried up to ``MAX_RETRY_ATTEMPTS`` times.
"""

import json
import re
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from urllib.parse import urlparse
from uuid import uuid4

from protean.exceptions import ValidationError
from protean.fields import DateTime, Integer, String, Text

from shared.domain import evolve

from notifications.domain import notifications
from notifications.notification.status import NotificationStatus, is_terminal, transition

MAX_RETRY_ATTEMPTS = 3

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


class NotificationChannel(Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    WEBHOOK = "webhook"


def _now() -> datetime:
    return datetime.now(UTC)


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _recipient_error(channel: NotificationChannel, recipient: str | None) -> str | None:
    if channel == NotificationChannel.EMAIL:
        if not recipient or not _EMAIL_PATTERN.match(recipient):
            return "Valid recipient email is required for email channel"
    elif channel == NotificationChannel.SMS:
        if not recipient or not _E164_PATTERN.match(recipient):
            return "Valid E.164 phone number is required for sms channel"
    elif channel == NotificationChannel.PUSH:
        if not recipient or not recipient.strip():
            return "Device token is required for push channel"
    elif channel == NotificationChannel.WEBHOOK:
        if not recipient or not _is_http_url(recipient):
            return "Valid http(s) URL is required for webhook channel"
    return None


def parse_channel(value: "NotificationChannel | str") -> NotificationChannel:
    if isinstance(value, NotificationChannel):
        return value
    try:
        return NotificationChannel(value)
    except ValueError:
        raise ValidationError({"channel": [f"Unsupported channel: {value}"]}) from None


@notifications.aggregate
class Notification:
    user_id = String(required=True, max_length=255)
    channel = String(required=True, choices=NotificationChannel)
    recipient = String(max_length=2048)
    subject = String(max_length=500)
    body = Text(required=True)
    event_type = String(required=True, max_length=100)
    status = String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    correlation_id = String(max_length=255)
    retries = Integer(default=0)
    error_message = String(max_length=1000)
    provider_payload = Text()  # JSON: provider response dict
    context_data = Text()  # JSON: metadata dict
    sent_at = DateTime()
    failed_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(
        cls,
        user_id: str,
        channel: NotificationChannel | str,
        recipient: str,
        body: str,
        event_type: str,
        subject: str | None = None,
        correlation_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "Notification":
        channel = parse_channel(channel)
        errors: dict[str, list[str]] = {}
        if not event_type or not event_type.strip():
            errors["event_type"] = ["Event type is required"]
        if not user_id or not user_id.strip():
            errors["user_id"] = ["User id is required"]
        if not body or not body.strip():
            errors["body"] = ["Message body is required"]
        recipient_error = _recipient_error(channel, recipient)
        if recipient_error:
            errors["recipient"] = [recipient_error]
        if errors:
            raise ValidationError(errors)

        now = _now()
        return cls(
            user_id=user_id,
            channel=channel.value,
            recipient=recipient,
            body=body,
            event_type=event_type,
            subject=subject,
            status=NotificationStatus.PENDING.value,
            correlation_id=correlation_id or str(uuid4()),
            context_data=json.dumps(metadata or {}),
            created_at=now,
            updated_at=now,
        )

    @property
    def metadata(self) -> dict[str, Any]:
        return json.loads(self.context_data or "{}")

    @property
    def provider_response(self) -> dict[str, Any] | None:
        return json.loads(self.provider_payload) if self.provider_payload else None

    def is_terminal(self) -> bool:
        return is_terminal(self.status)

    def can_retry(self) -> bool:
        return self.status == NotificationStatus.FAILED.value and self.retries < MAX_RETRY_ATTEMPTS

    def mark_sent(self, provider_response: dict[str, Any] | None = None) -> "Notification":
        return self._with(
            status=transition(self.status, NotificationStatus.SENT).value,
            sent_at=_now(),
            provider_payload=json.dumps(provider_response) if provider_response else None,
            error_message=None,
        )

    def mark_failed(self, error: str) -> "Notification":
        return self._with(
            status=transition(self.status, NotificationStatus.FAILED).value,
            failed_at=_now(),
            error_message=error or "Unknown error",
        )

    def mark_retrying(self) -> "Notification":
        """Move to RETRYING and count the attempt."""
        target = transition(self.status, NotificationStatus.RETRYING)
        if self.retries >= MAX_RETRY_ATTEMPTS:
            raise ValidationError({"retries": [f"Max retry attempts ({MAX_RETRY_ATTEMPTS}) exceeded"]})
        return self._with(status=target.value, retries=self.retries + 1)

    def _with(self, **changes) -> "Notification":
        return evolve(self, updated_at=max(_now(), self.updated_at), **changes)
