"""Order queries beyond lookup by id."""

from shared.messaging.outbox import QUERY_LIMIT

from ordering.domain import ordering
from ordering.order.order import Order


@ordering.repository(part_of=Order)
class OrderRepository:
    def find_by_user_id(self, user_id: str) -> list[Order]:
        orders = self._dao.query.filter(user_id=user_id).limit(QUERY_LIMIT).all().items
        return sorted(orders, key=lambda order: order.created_at, reverse=True)
