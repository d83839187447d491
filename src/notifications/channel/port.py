"""Notification provider port (abstract interface).

A provider delivers a ``Notification`` over one channel. Providers never
raise for delivery problems; they report them in ``SendResult``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from notifications.notification.notification import Notification, NotificationChannel


@dataclass(frozen=True)
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


class NotificationProvider(ABC):
    channel: NotificationChannel
    name: str = ""

    @abstractmethod
    async def send(self, notification: Notification) -> SendResult: ...

    async def is_available(self) -> bool:
        return True

    def _wrong_channel(self, notification: Notification) -> SendResult | None:
        if notification.channel != self.channel.value:
            return SendResult(
                success=False,
                error=f"Invalid channel: {notification.channel}. Expected: {self.channel.value}",
            )
        return None
