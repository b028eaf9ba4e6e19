import pytest

from app.services.transitions import (
    SUCCESS_EFFECTS,
    EnrollmentOutcome,
    EnrollmentState,
    IllegalTransition,
    OrderEvent,
    OrderStatus,
    enrollment_state_of,
    enrollment_transition,
    order_transition,
)


def test_pending_success_completes_with_all_effects():
    transition = order_transition(OrderStatus.PENDING, OrderEvent.PAYMENT_SUCCEEDED)

    assert transition.next == OrderStatus.COMPLETED
    assert transition.changed is True
    assert transition.effects == SUCCESS_EFFECTS


def test_pending_failure_fails_without_effects():
    transition = order_transition("pending", OrderEvent.PAYMENT_FAILED)

    assert transition.next == OrderStatus.FAILED
    assert transition.changed is True
    assert transition.effects == ()


@pytest.mark.parametrize(
    "state, event",
    [
        (OrderStatus.COMPLETED, OrderEvent.PAYMENT_SUCCEEDED),
        (OrderStatus.COMPLETED, OrderEvent.PAYMENT_FAILED),
        (OrderStatus.FAILED, OrderEvent.PAYMENT_FAILED),
    ],
)
def test_terminal_replays_are_no_ops(state, event):
    transition = order_transition(state, event)

    assert transition.next == state
    assert transition.changed is False
    assert transition.effects == ()


def test_failed_order_cannot_be_paid_later():
    with pytest.raises(IllegalTransition) as excinfo:
        order_transition(OrderStatus.FAILED, OrderEvent.PAYMENT_SUCCEEDED)

    assert excinfo.value.state == OrderStatus.FAILED
    assert excinfo.value.event == OrderEvent.PAYMENT_SUCCEEDED


def test_unknown_status_is_rejected():
    with pytest.raises(ValueError):
        order_transition("refunded", OrderEvent.PAYMENT_SUCCEEDED)


@pytest.mark.parametrize(
    "state, outcome, write",
    [
        (EnrollmentState.ABSENT, EnrollmentOutcome.NEW, "insert"),
        (EnrollmentState.INACTIVE, EnrollmentOutcome.REACTIVATED, "reactivate"),
        (EnrollmentState.ACTIVE, EnrollmentOutcome.ALREADY_ENROLLED, None),
    ],
)
def test_enrollment_always_ends_active(state, outcome, write):
    transition = enrollment_transition(state)

    assert transition.next == EnrollmentState.ACTIVE
    assert transition.outcome == outcome
    assert transition.write == write


class _Row:
    def __init__(self, is_active):
        self.is_active = is_active


def test_enrollment_state_of_rows():
    assert enrollment_state_of(None) == EnrollmentState.ABSENT
    assert enrollment_state_of(_Row(True)) == EnrollmentState.ACTIVE
    assert enrollment_state_of(_Row(False)) == EnrollmentState.INACTIVE
