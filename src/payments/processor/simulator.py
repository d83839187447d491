"""Simulated payment provider.

Succeeds with a configurable probability after a random latency, and
fails with one of a handful of realistic decline reasons otherwise.
Recent results are kept per idempotency key, so a repeated request is
answered without charging again.
"""

import asyncio
import random
from collections import OrderedDict
from datetime import UTC, datetime
from uuid import uuid4

import structlog

from payments.processor.port import PaymentProcessor, PaymentRequest, ProcessingResult

logger = structlog.get_logger(__name__)

FAILURE_REASONS = [
    "Insufficient funds",
    "Card declined",
    "Invalid card number",
    "Card expired",
    "Transaction limit exceeded",
    "Fraud suspected",
]

SUPPORTED_METHODS = {"credit_card", "debit_card", "paypal", "stripe", "bank_transfer"}

IDEMPOTENCY_CACHE_SIZE = 10_000


class PaymentSimulator(PaymentProcessor):
    def __init__(
        self,
        success_rate: float = 0.8,
        min_latency: float = 0.5,
        max_latency: float = 2.0,
        seed: int | None = None,
    ):
        self.success_rate = success_rate
        self.min_latency = min_latency
        self.max_latency = max(max_latency, min_latency)
        self._random = random.Random(seed)
        self._results: OrderedDict[str, ProcessingResult] = OrderedDict()

    def supports(self, method: str) -> bool:
        return method in SUPPORTED_METHODS

    async def process(self, request: PaymentRequest) -> ProcessingResult:
        key = request.idempotency_key
        if key and key in self._results:
            logger.debug("Simulated payment replayed", payment_id=request.payment_id, idempotency_key=key)
            return self._results[key]

        result = await self._charge(request)
        if key:
            self._results[key] = result
            if len(self._results) > IDEMPOTENCY_CACHE_SIZE:
                self._results.popitem(last=False)
        return result

    async def _charge(self, request: PaymentRequest) -> ProcessingResult:
        latency = self._random.uniform(self.min_latency, self.max_latency)
        await asyncio.sleep(latency)

        if self._random.random() < self.success_rate:
            response = {
                "provider": "simulator",
                "transaction_id": f"sim_{uuid4().hex[:16]}",
                "status": "approved",
                "processed_at": datetime.now(UTC).isoformat(),
                "latency_ms": int(latency * 1000),
            }
            logger.debug("Simulated payment approved", payment_id=request.payment_id)
            return ProcessingResult(success=True, provider_response=response)

        reason = self._random.choice(FAILURE_REASONS)
        logger.debug("Simulated payment declined", payment_id=request.payment_id, reason=reason)
        return ProcessingResult(
            success=False,
            failure_reason=reason,
            provider_response={"provider": "simulator", "status": "declined", "reason": reason},
        )
