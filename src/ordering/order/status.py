"""Order status state machine.

    PENDING → AWAITING_PAYMENT → PAID → SHIPPED → COMPLETED
    any non-terminal state → CANCELLED

COMPLETED and CANCELLED are terminal. Every status change on an Order
goes through ``transition()``, which accepts members or their values.
"""

from enum import Enum

from shared.exceptions import InvalidTransitionError


class OrderStatus(Enum):
    PENDING = "pending"
    AWAITING_PAYMENT = "awaiting_payment"
    PAID = "paid"
    SHIPPED = "shipped"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.AWAITING_PAYMENT, OrderStatus.CANCELLED},
    OrderStatus.AWAITING_PAYMENT: {OrderStatus.PAID, OrderStatus.CANCELLED},
    OrderStatus.PAID: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.COMPLETED, OrderStatus.CANCELLED},
    OrderStatus.COMPLETED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}


def is_valid_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    return OrderStatus(target) in _VALID_TRANSITIONS.get(OrderStatus(current), set())


def transition(current: OrderStatus | str, target: OrderStatus | str) -> OrderStatus:
    if not is_valid_transition(current, target):
        raise InvalidTransitionError(OrderStatus(current), OrderStatus(target))
    return OrderStatus(target)


def is_terminal(status: OrderStatus | str) -> bool:
    return not _VALID_TRANSITIONS[OrderStatus(status)]
