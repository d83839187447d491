"""Provider registry — one notification provider per channel.

Built explicitly per service instance; nothing is cached at module level.
"""

from shared.config import ServiceSettings

from notifications.channel.email import SimulatedEmailProvider
from notifications.channel.port import NotificationProvider
from notifications.channel.webhook import HttpWebhookProvider, SimulatedWebhookProvider
from notifications.notification.notification import NotificationChannel


class ProviderRegistry:
    def __init__(self, providers: list[NotificationProvider] | None = None) -> None:
        self._providers: dict[NotificationChannel, NotificationProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: NotificationProvider) -> None:
        self._providers[provider.channel] = provider

    def has_provider(self, channel: NotificationChannel | str) -> bool:
        return NotificationChannel(channel) in self._providers

    def get(self, channel: NotificationChannel | str) -> NotificationProvider:
        provider = self._providers.get(NotificationChannel(channel))
        if provider is None:
            raise LookupError(f"No provider registered for channel: {NotificationChannel(channel).value}")
        return provider

    @property
    def channels(self) -> list[NotificationChannel]:
        return list(self._providers)


def build_registry(settings: ServiceSettings, seed: int | None = None) -> ProviderRegistry:
    email = SimulatedEmailProvider(
        success_rate=settings.notification_success_rate,
        min_latency=settings.notification_min_latency,
        max_latency=settings.notification_max_latency,
        seed=seed,
    )
    if settings.webhook_delivery == "http":
        webhook: NotificationProvider = HttpWebhookProvider(timeout=settings.webhook_timeout)
    else:
        webhook = SimulatedWebhookProvider(
            success_rate=settings.notification_success_rate,
            min_latency=settings.notification_min_latency,
            max_latency=settings.notification_max_latency,
            seed=seed,
        )
    return ProviderRegistry([email, webhook])
