"""Ordering service: the ordering domain, its use cases and the payment-events coordinator.

Use cases check the caller first, then run one command and publish what
it staged. Reads go straight to the repositories.
"""

import json

from shared.auth import Principal
from shared.config import ServiceSettings
from shared.messaging.broker import Broker
from shared.messaging.coordinator import Coordinator
from shared.messaging.idempotency import IdempotencyGuard
from shared.service import Service

from ordering.domain import OutboxMessage, ordering
from ordering.order import repository  # noqa: F401
from ordering.order.creation import CreateOrder, SubmitOrder
from ordering.order.failure_policy import PaymentFailurePolicy, build_failure_policy
from ordering.order.history import OrderHistory
from ordering.order.modification import AddOrderItem, RemoveOrderItem
from ordering.order.order import Order
from ordering.order.payment_events import PaymentEventsCoordinator
from ordering.order.status_update import UpdateOrderStatus


class OrderingService(Service):
    domain = ordering
    outbox_message = OutboxMessage

    def __init__(
        self,
        settings: ServiceSettings,
        broker: Broker,
        consumer_broker: Broker | None = None,
        guard: IdempotencyGuard | None = None,
        failure_policy: PaymentFailurePolicy | None = None,
    ):
        super().__init__(settings, broker, consumer_broker, guard)
        self.payment_events = PaymentEventsCoordinator(
            self.guard,
            self.process,
            failure_policy or build_failure_policy(settings),
        )

    @property
    def coordinators(self) -> list[Coordinator]:
        return [self.payment_events]

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------
    async def create_order(self, command: CreateOrder) -> Order:
        order_id = await self.execute(command)
        return self.load(Order, order_id)

    async def submit_order(self, principal: Principal, command: SubmitOrder) -> Order:
        principal.assert_owner_or_admin(self.load(Order, command.order_id).user_id)
        await self.execute(command)
        return self.load(Order, command.order_id)

    async def add_item(self, principal: Principal, order_id: str, item: dict) -> Order:
        principal.assert_owner_or_admin(self.load(Order, order_id).user_id)
        await self.execute(AddOrderItem(order_id=order_id, item=json.dumps(item)))
        return self.load(Order, order_id)

    async def remove_item(self, principal: Principal, order_id: str, product_id: str) -> Order:
        principal.assert_owner_or_admin(self.load(Order, order_id).user_id)
        await self.execute(RemoveOrderItem(order_id=order_id, product_id=product_id))
        return self.load(Order, order_id)

    async def update_status(self, principal: Principal, command: UpdateOrderStatus) -> Order:
        principal.assert_admin()
        await self.execute(command)
        return self.load(Order, command.order_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_order(self, principal: Principal, order_id: str) -> Order:
        order = self.load(Order, order_id)
        principal.assert_owner_or_admin(order.user_id)
        return order

    def list_user_orders(self, principal: Principal, user_id: str) -> list[Order]:
        principal.assert_owner_or_admin(user_id)
        with self.repository(Order) as orders:
            return orders.find_by_user_id(user_id)

    def order_history(self, principal: Principal, order_id: str) -> list[OrderHistory]:
        order = self.get_order(principal, order_id)
        with self.repository(OrderHistory) as history:
            return history.find_by_order_id(str(order.id))
