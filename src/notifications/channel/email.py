"""Simulated email provider.

Stands in for a real email API: waits a random latency and succeeds with
a configurable probability.
"""

import asyncio
import random
import time
from uuid import uuid4

import structlog

from notifications.channel.port import NotificationProvider, SendResult
from notifications.notification.notification import Notification, NotificationChannel

logger = structlog.get_logger(__name__)

EMAIL_FAILURE_REASONS = [
    "Mailbox unavailable",
    "Recipient address rejected",
    "Message rejected as spam",
    "SMTP connection timed out",
]


class SimulatedEmailProvider(NotificationProvider):
    channel = NotificationChannel.EMAIL
    name = "email"

    def __init__(
        self,
        success_rate: float = 0.9,
        min_latency: float = 0.5,
        max_latency: float = 1.5,
        seed: int | None = None,
    ):
        self.success_rate = success_rate
        self.min_latency = min_latency
        self.max_latency = max(max_latency, min_latency)
        self._random = random.Random(seed)

    async def send(self, notification: Notification) -> SendResult:
        wrong = self._wrong_channel(notification)
        if wrong is not None:
            return wrong

        latency = self._random.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(latency)

        if self._random.random() < self.success_rate:
            message_id = f"email-{int(time.time() * 1000)}-{uuid4().hex[:8]}"
            logger.info(
                "Simulated email sent",
                notification_id=str(notification.id),
                recipient=notification.recipient,
                subject=notification.subject,
                message_id=message_id,
            )
            return SendResult(
                success=True,
                message_id=message_id,
                metadata={"provider": "email-simulator", "delay_ms": int(latency * 1000)},
            )

        reason = self._random.choice(EMAIL_FAILURE_REASONS)
        return SendResult(
            success=False,
            error=reason,
            metadata={"provider": "email-simulator", "delay_ms": int(latency * 1000)},
        )
