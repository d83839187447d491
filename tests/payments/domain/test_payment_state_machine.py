"""Tests for the payment status state machine."""

import itertools

import pytest
from shared.exceptions import InvalidTransitionError

from payments.payment.status import PaymentStatus, is_terminal, is_valid_transition, transition

VALID = {
    (PaymentStatus.PENDING, PaymentStatus.PROCESSING),
    (PaymentStatus.PENDING, PaymentStatus.CANCELLED),
    (PaymentStatus.PROCESSING, PaymentStatus.SUCCEEDED),
    (PaymentStatus.PROCESSING, PaymentStatus.FAILED),
    (PaymentStatus.PROCESSING, PaymentStatus.CANCELLED),
    (PaymentStatus.FAILED, PaymentStatus.PENDING),
}


@pytest.mark.parametrize("current,target", list(itertools.product(PaymentStatus, PaymentStatus)))
def test_transition_table(current, target):
    assert is_valid_transition(current, target) == ((current, target) in VALID)


class TestTransition:
    def test_valid_transition_returns_target(self):
        assert transition(PaymentStatus.PENDING, PaymentStatus.PROCESSING) == PaymentStatus.PROCESSING

    def test_invalid_transition_raises(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            transition(PaymentStatus.SUCCEEDED, PaymentStatus.FAILED)
        assert "succeeded to failed" in str(exc_info.value)

    @pytest.mark.parametrize("status", [PaymentStatus.SUCCEEDED, PaymentStatus.CANCELLED])
    def test_terminal_states(self, status):
        assert is_terminal(status)

    @pytest.mark.parametrize("status", [PaymentStatus.PENDING, PaymentStatus.PROCESSING, PaymentStatus.FAILED])
    def test_non_terminal_states(self, status):
        assert not is_terminal(status)


def test_transition_accepts_stored_values():
    assert transition("failed", "pending") == PaymentStatus.PENDING
    assert is_terminal("succeeded")
