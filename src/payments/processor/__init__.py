"""Payment processor construction from service settings."""

from shared.config import ServiceSettings

from payments.processor.port import PaymentProcessor
from payments.processor.simulator import PaymentSimulator


def build_processor(settings: ServiceSettings, seed: int | None = None) -> PaymentProcessor:
    return PaymentSimulator(
        success_rate=settings.payment_success_rate,
        min_latency=settings.payment_min_latency,
        max_latency=settings.payment_max_latency,
        seed=seed,
    )
