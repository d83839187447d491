"""Fake notification provider — records sends for test assertions."""

from uuid import uuid4

from notifications.channel.port import NotificationProvider, SendResult
from notifications.notification.notification import Notification, NotificationChannel


class FakeNotificationProvider(NotificationProvider):
    def __init__(self, channel: NotificationChannel = NotificationChannel.EMAIL):
        self.channel = channel
        self.name = f"fake-{channel.value}"
        self.sent: list[Notification] = []
        self.should_succeed = True
        self.failure_reason = "Delivery failed"
        self.available = True

    def configure(
        self, should_succeed: bool = True, failure_reason: str = "Delivery failed", available: bool = True
    ) -> None:
        """Configure the fake provider behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.available = available

    async def is_available(self) -> bool:
        return self.available

    async def send(self, notification: Notification) -> SendResult:
        if not self.should_succeed:
            return SendResult(success=False, error=self.failure_reason)
        self.sent.append(notification)
        return SendResult(success=True, message_id=f"{self.channel.value}-{uuid4().hex[:12]}")

    def reset(self) -> None:
        """Clear sent notifications (useful between tests)."""
        self.sent.clear()
        self.configure()
