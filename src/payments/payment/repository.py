"""Payment queries beyond lookup by id."""

from shared.messaging.outbox import QUERY_LIMIT

from payments.domain import payments
from payments.payment.payment import Payment


@payments.repository(part_of=Payment)
class PaymentRepository:
    def find_by_order_id(self, order_id: str) -> list[Payment]:
        found = self._dao.query.filter(order_id=order_id).limit(QUERY_LIMIT).all().items
        return sorted(found, key=lambda payment: payment.created_at)

    def find_by_user_id(self, user_id: str) -> list[Payment]:
        found = self._dao.query.filter(user_id=user_id).limit(QUERY_LIMIT).all().items
        return sorted(found, key=lambda payment: payment.created_at, reverse=True)
