"""Per-service runtime settings.

Each service process builds its own ``ServiceSettings`` and passes it to
the publisher, consumer and use cases that need it. Values can be
overridden through ``SHOPFLOW_*`` environment variables or a ``.env`` file.
"""

from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceSettings(BaseSettings):
    """Broker, retry and timeout settings for one service instance."""

    model_config = SettingsConfigDict(
        env_prefix="SHOPFLOW_",
        env_file=".env",
        extra="ignore",
    )

    service_name: str = Field(default="ordering", description="Logical service name")
    broker_url: str = Field(
        default="memory://",
        description="memory:// for the in-process broker, amqp://... for RabbitMQ",
    )
    exchange_name: str = Field(default="ecommerce.events", description="Durable topic exchange")
    dlq_name: str = Field(default="ecommerce.dlq", description="Shared dead-letter queue")

    # Consumer
    prefetch_count: int = Field(default=1, ge=1)
    max_retries: int = Field(default=3, ge=0)
    retry_delay: float = Field(default=1.0, ge=0, description="Base redelivery delay in seconds")

    # Publisher
    reconnect_delay: float = Field(default=5.0, gt=0)
    reconnect_max_delay: float = Field(default=60.0, gt=0)
    publish_timeout: float = Field(default=5.0, gt=0)
    max_publish_attempts: int = Field(default=3, ge=1)
    outbox_max_attempts: int = Field(default=10, ge=1)
    outbox_retention: float = Field(default=3600.0, ge=0, description="Seconds published outbox messages are kept")
    dead_letter_history: int = Field(default=100, ge=1, description="Dead-lettered messages kept for inspection")

    # Ordering
    payment_failure_policy: Literal["record_only", "cancel"] = Field(
        default="record_only",
        description="record_only keeps a failed order retryable, cancel releases it",
    )
    payment_failure_cancel_after: int = Field(
        default=0, ge=0, description="Payment retries to tolerate before the cancel policy cancels"
    )

    # Payment processing
    payment_timeout: float = Field(default=10.0, gt=0)
    payment_success_rate: float = Field(default=0.8, ge=0, le=1)
    payment_min_latency: float = Field(default=0.5, ge=0)
    payment_max_latency: float = Field(default=2.0, ge=0)

    # Notification delivery
    notification_success_rate: float = Field(default=0.9, ge=0, le=1)
    notification_min_latency: float = Field(default=0.5, ge=0)
    notification_max_latency: float = Field(default=1.5, ge=0)
    webhook_delivery: Literal["simulated", "http"] = Field(
        default="simulated",
        description="http posts merchant webhooks for real, simulated only pretends to",
    )
    webhook_timeout: float = Field(default=5.0, gt=0)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def queue_name(self) -> str:
        return f"{self.service_name}.events"
