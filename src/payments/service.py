"""Payments service: the payments domain, its use cases and the ordering-events coordinator."""

from protean.exceptions import ValidationError

from shared.auth import Principal
from shared.config import ServiceSettings
from shared.messaging.broker import Broker
from shared.messaging.coordinator import Coordinator
from shared.messaging.idempotency import IdempotencyGuard
from shared.service import Service

from payments.domain import OutboxMessage, payments
from payments.payment import repository, retry, webhook  # noqa: F401
from payments.payment.initiation import InitiatePayment
from payments.payment.ordering_events import OrderingEventsCoordinator
from payments.payment.payment import Payment, parse_method
from payments.payment.processing import PaymentProcessing
from payments.payment.retry import RetryPayment
from payments.payment.webhook import RecordProviderCallback
from payments.processor import build_processor
from payments.processor.port import PaymentProcessor


class PaymentsService(Service):
    domain = payments
    outbox_message = OutboxMessage

    def __init__(
        self,
        settings: ServiceSettings,
        broker: Broker,
        consumer_broker: Broker | None = None,
        guard: IdempotencyGuard | None = None,
        processor: PaymentProcessor | None = None,
    ):
        super().__init__(settings, broker, consumer_broker, guard)
        self.processing = PaymentProcessing(self, processor or build_processor(settings), settings.payment_timeout)
        self.ordering_events = OrderingEventsCoordinator(self.guard, self)

    @property
    def processor(self) -> PaymentProcessor:
        return self.processing.processor

    @property
    def coordinators(self) -> list[Coordinator]:
        return [self.ordering_events]

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def initiate_payment(self, command: InitiatePayment, wait: bool = False) -> Payment:
        """Create a payment and process it, in the background unless ``wait``."""
        method = parse_method(command.method)
        if not self.processor.supports(method.value):
            raise ValidationError({"method": [f"Payment method '{method.value}' is not supported"]})

        payment_id = self.process(command)
        payment = self.load(Payment, payment_id)
        await self._start(payment_id, wait)
        return payment

    async def retry_payment(self, principal: Principal, payment_id: str, wait: bool = False) -> Payment:
        principal.assert_owner_or_admin(self.load(Payment, payment_id).user_id)
        self.process(RetryPayment(payment_id=payment_id))
        retried = self.load(Payment, payment_id)
        await self._start(payment_id, wait)
        return retried

    async def record_callback(self, command: RecordProviderCallback) -> Payment:
        payment_id = await self.execute(command)
        return self.load(Payment, payment_id)

    async def _start(self, payment_id: str, wait: bool) -> None:
        if wait:
            await self.processing.run(payment_id)
        else:
            self.run_in_background(self.processing.run(payment_id))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def find_payments(self, order_id: str) -> list[Payment]:
        with self.repository(Payment) as repo:
            return repo.find_by_order_id(order_id)

    def get_payment(self, principal: Principal, payment_id: str) -> Payment:
        payment = self.load(Payment, payment_id)
        principal.assert_owner_or_admin(payment.user_id)
        return payment

    def payments_for_order(self, principal: Principal, order_id: str) -> list[Payment]:
        found = self.find_payments(order_id)
        for payment in found:
            principal.assert_owner_or_admin(payment.user_id)
        return found
