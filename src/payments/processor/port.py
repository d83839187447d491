"""Payment processor port (abstract interface).

The processor is the external provider that actually moves money. The
Payments service only depends on this contract; the simulator stands in
for a real provider and the fake adapter is used by tests.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class PaymentRequest:
    payment_id: str
    order_id: str
    user_id: str
    amount: float
    currency: str
    method: str
    idempotency_key: str | None = None


@dataclass(frozen=True)
class ProcessingResult:
    """Outcome of a processing attempt."""

    success: bool
    provider_response: dict[str, Any] | None = None
    failure_reason: str | None = None


class PaymentProcessor(ABC):
    @abstractmethod
    async def process(self, request: PaymentRequest) -> ProcessingResult:
        """Charge the payment; may take an arbitrary amount of time.

        Requests repeating an ``idempotency_key`` get the result of the
        first charge made with it.
        """
        ...

    def supports(self, method: str) -> bool:
        return True
