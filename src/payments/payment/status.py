"""Payment status state machine.

    PENDING → PROCESSING → SUCCEEDED
                        ↘ FAILED → PENDING (retry)
    PENDING / PROCESSING → CANCELLED

SUCCEEDED and CANCELLED are terminal. The functions accept members or
their values.
"""

from enum import Enum

from shared.exceptions import InvalidTransitionError


class PaymentStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


_VALID_TRANSITIONS = {
    PaymentStatus.PENDING: {PaymentStatus.PROCESSING, PaymentStatus.CANCELLED},
    PaymentStatus.PROCESSING: {PaymentStatus.SUCCEEDED, PaymentStatus.FAILED, PaymentStatus.CANCELLED},
    PaymentStatus.SUCCEEDED: set(),  # Terminal
    PaymentStatus.FAILED: {PaymentStatus.PENDING},  # retry
    PaymentStatus.CANCELLED: set(),  # Terminal
}


def is_valid_transition(current: PaymentStatus | str, target: PaymentStatus | str) -> bool:
    return PaymentStatus(target) in _VALID_TRANSITIONS.get(PaymentStatus(current), set())


def transition(current: PaymentStatus | str, target: PaymentStatus | str) -> PaymentStatus:
    if not is_valid_transition(current, target):
        raise InvalidTransitionError(PaymentStatus(current), PaymentStatus(target))
    return PaymentStatus(target)


def is_terminal(status: PaymentStatus | str) -> bool:
    return not _VALID_TRANSITIONS[PaymentStatus(status)]
