"""Notification status state machine.

    PENDING → SENT
    PENDING → FAILED → RETRYING → SENT | FAILED
    PENDING → RETRYING

SENT is terminal. The functions accept members or their values.
"""

from enum import Enum

from shared.exceptions import InvalidTransitionError


class NotificationStatus(Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    RETRYING = "retrying"


_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENT, NotificationStatus.FAILED, NotificationStatus.RETRYING},
    NotificationStatus.SENT: set(),  # Terminal
    NotificationStatus.FAILED: {NotificationStatus.RETRYING},
    NotificationStatus.RETRYING: {NotificationStatus.SENT, NotificationStatus.FAILED},
}


def is_valid_transition(current: NotificationStatus | str, target: NotificationStatus | str) -> bool:
    return NotificationStatus(target) in _VALID_TRANSITIONS.get(NotificationStatus(current), set())


def transition(current: NotificationStatus | str, target: NotificationStatus | str) -> NotificationStatus:
    if not is_valid_transition(current, target):
        raise InvalidTransitionError(NotificationStatus(current), NotificationStatus(target))
    return NotificationStatus(target)


def is_terminal(status: NotificationStatus | str) -> bool:
    return not _VALID_TRANSITIONS[NotificationStatus(status)]
