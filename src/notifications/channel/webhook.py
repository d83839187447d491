"""Merchant webhook providers.

``HttpWebhookProvider`` POSTs the notification as JSON with httpx; any
2xx response counts as delivered. ``SimulatedWebhookProvider`` only
pretends to, with the same failure modes a merchant endpoint shows.
"""

import asyncio
import json
import random
import time
from uuid import uuid4

import httpx
import structlog

from notifications.channel.port import NotificationProvider, SendResult
from notifications.notification.notification import Notification, NotificationChannel

logger = structlog.get_logger(__name__)

WEBHOOK_ERRORS = [
    (400, "Bad Request: Invalid payload format"),
    (401, "Unauthorized: Invalid webhook signature"),
    (404, "Not Found: Webhook endpoint not found"),
    (408, "Request Timeout: Webhook took too long to respond"),
    (429, "Too Many Requests: Rate limit exceeded"),
    (500, "Internal Server Error: Webhook endpoint error"),
    (502, "Bad Gateway: Upstream server error"),
    (503, "Service Unavailable: Webhook endpoint down"),
]


def webhook_payload(notification: Notification) -> dict:
    try:
        data = json.loads(notification.body)
    except json.JSONDecodeError:
        data = {"message": notification.body}
    return {
        "eventType": notification.event_type,
        "notificationId": str(notification.id),
        "correlationId": notification.correlation_id,
        "data": data,
    }


class HttpWebhookProvider(NotificationProvider):
    channel = NotificationChannel.WEBHOOK
    name = "webhook"

    def __init__(self, timeout: float = 5.0, client: httpx.AsyncClient | None = None):
        self.timeout = timeout
        self._client = client

    async def send(self, notification: Notification) -> SendResult:
        wrong = self._wrong_channel(notification)
        if wrong is not None:
            return wrong

        headers = {
            "X-Correlation-Id": notification.correlation_id,
            "X-Event-Type": notification.event_type,
        }
        try:
            if self._client is not None:
                response = await self._client.post(
                    notification.recipient, json=webhook_payload(notification), headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(
                        notification.recipient, json=webhook_payload(notification), headers=headers
                    )
        except httpx.HTTPError as exc:
            logger.warning("Webhook delivery failed", notification_id=str(notification.id), error=str(exc))
            return SendResult(success=False, error=f"Webhook request failed: {exc}")

        if response.is_success:
            return SendResult(
                success=True,
                message_id=f"webhook-{uuid4().hex[:12]}",
                metadata={"provider": "webhook-http", "status_code": response.status_code},
            )
        return SendResult(
            success=False,
            error=f"Webhook endpoint returned {response.status_code}",
            metadata={"provider": "webhook-http", "status_code": response.status_code},
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


class SimulatedWebhookProvider(NotificationProvider):
    channel = NotificationChannel.WEBHOOK
    name = "webhook"

    def __init__(
        self,
        success_rate: float = 0.9,
        min_latency: float = 0.5,
        max_latency: float = 2.0,
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
            message_id = f"webhook-{int(time.time() * 1000)}-{uuid4().hex[:8]}"
            logger.info(
                "Simulated webhook delivered",
                notification_id=str(notification.id),
                url=notification.recipient,
                message_id=message_id,
            )
            return SendResult(
                success=True,
                message_id=message_id,
                metadata={"provider": "webhook-simulator", "status_code": 200},
            )

        status_code, reason = self._random.choice(WEBHOOK_ERRORS)
        return SendResult(
            success=False,
            error=reason,
            metadata={"provider": "webhook-simulator", "status_code": status_code},
        )
