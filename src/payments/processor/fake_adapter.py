"""Configurable fake payment processor for tests.

Records every call and can be switched between success and failure at
runtime; ``delay`` makes it slow enough to exercise timeouts. Results are
remembered per idempotency key like a real provider does.
"""

import asyncio
from uuid import uuid4

from payments.processor.port import PaymentProcessor, PaymentRequest, ProcessingResult


class FakePaymentProcessor(PaymentProcessor):
    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.delay: float = 0.0
        self.calls: list[PaymentRequest] = []
        self.charges: dict[str, ProcessingResult] = {}

    def configure(self, should_succeed: bool = True, failure_reason: str = "Card declined", delay: float = 0.0) -> None:
        """Configure processor behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.delay = delay

    async def process(self, request: PaymentRequest) -> ProcessingResult:
        self.calls.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)

        if request.idempotency_key in self.charges:
            return self.charges[request.idempotency_key]

        if self.should_succeed:
            result = ProcessingResult(
                success=True,
                provider_response={"provider": "fake", "transaction_id": f"fake_txn_{uuid4().hex[:12]}"},
            )
        else:
            result = ProcessingResult(
                success=False,
                failure_reason=self.failure_reason,
                provider_response={"provider": "fake", "status": "declined"},
            )
        if request.idempotency_key:
            self.charges[request.idempotency_key] = result
        return result
