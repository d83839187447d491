"""Order history: append-only audit trail of status changes."""

import itertools
import json
from datetime import UTC, datetime
from typing import Any

from protean.fields import DateTime, Identifier, Integer, String, Text

from shared.messaging.outbox import QUERY_LIMIT

from ordering.domain import ordering
from ordering.order.status import OrderStatus

_sequence = itertools.count(1)


@ordering.aggregate
class OrderHistory:
    order_id = Identifier(required=True)
    old_status = String(choices=OrderStatus, required=True)
    new_status = String(choices=OrderStatus, required=True)
    changed_by = String(required=True, max_length=255)
    reason = String(max_length=500)
    details = Text()  # JSON: metadata dict
    sequence = Integer(default=0)
    changed_at = DateTime()

    @classmethod
    def record(
        cls,
        order_id: str,
        old_status: str,
        new_status: str,
        changed_by: str,
        reason: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "OrderHistory":
        return cls(
            order_id=order_id,
            old_status=old_status,
            new_status=new_status,
            changed_by=changed_by,
            reason=reason,
            details=json.dumps(metadata or {}),
            sequence=next(_sequence),
            changed_at=datetime.now(UTC),
        )

    @property
    def metadata(self) -> dict[str, Any]:
        return json.loads(self.details or "{}")


@ordering.repository(part_of=OrderHistory)
class OrderHistoryRepository:
    def find_by_order_id(self, order_id: str) -> list[OrderHistory]:
        entries = self._dao.query.filter(order_id=order_id).limit(QUERY_LIMIT).all().items
        return sorted(entries, key=lambda entry: (entry.changed_at, entry.sequence))
