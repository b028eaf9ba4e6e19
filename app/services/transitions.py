# app/services/transitions.py
"""
Order and enrollment state tables.

Every function here is pure: it takes the state observed in the store and an
event, and returns the next state plus what the caller has to write. The
services apply the write as a conditional update, so running the same event
twice converges on the same row.
"""

import enum
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class OrderEvent(str, enum.Enum):
    PAYMENT_SUCCEEDED = "payment_succeeded"
    PAYMENT_FAILED = "payment_failed"


class EnrollmentState(str, enum.Enum):
    ABSENT = "absent"
    ACTIVE = "active"
    INACTIVE = "inactive"


class EnrollmentOutcome(str, enum.Enum):
    NEW = "new"
    REACTIVATED = "reactivated"
    ALREADY_ENROLLED = "already_enrolled"


class PostCommitEvent(str, enum.Enum):
    REFERRAL_USAGE_INCREMENT = "referral_usage_increment"
    REFERRAL_REWARD_ISSUE = "referral_reward_issue"
    SEND_CONFIRMATION_EMAIL = "send_confirmation_email"


SUCCESS_EFFECTS: Tuple[PostCommitEvent, ...] = (
    PostCommitEvent.REFERRAL_USAGE_INCREMENT,
    PostCommitEvent.REFERRAL_REWARD_ISSUE,
    PostCommitEvent.SEND_CONFIRMATION_EMAIL,
)


class IllegalTransition(Exception):
    def __init__(self, state, event):
        self.state = state
        self.event = event
        super().__init__(f"No transition from {state} on {event}")


@dataclass(frozen=True)
class OrderTransition:
    previous: OrderStatus
    next: OrderStatus
    changed: bool
    effects: Tuple[PostCommitEvent, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class EnrollmentTransition:
    previous: EnrollmentState
    next: EnrollmentState
    outcome: EnrollmentOutcome
    write: Optional[str]  # 'insert', 'reactivate' or None


# (state, event) -> (next state, side effects to run after commit)
ORDER_TRANSITIONS: Dict[
    Tuple[OrderStatus, OrderEvent], Tuple[OrderStatus, Tuple[PostCommitEvent, ...]]
] = {
    (OrderStatus.PENDING, OrderEvent.PAYMENT_SUCCEEDED): (
        OrderStatus.COMPLETED,
        SUCCESS_EFFECTS,
    ),
    (OrderStatus.PENDING, OrderEvent.PAYMENT_FAILED): (OrderStatus.FAILED, ()),
    # Replays of a terminal outcome are no-ops
    (OrderStatus.COMPLETED, OrderEvent.PAYMENT_SUCCEEDED): (OrderStatus.COMPLETED, ()),
    (OrderStatus.COMPLETED, OrderEvent.PAYMENT_FAILED): (OrderStatus.COMPLETED, ()),
    (OrderStatus.FAILED, OrderEvent.PAYMENT_FAILED): (OrderStatus.FAILED, ()),
}


ENROLLMENT_TRANSITIONS: Dict[
    EnrollmentState, Tuple[EnrollmentState, EnrollmentOutcome, Optional[str]]
] = {
    EnrollmentState.ABSENT: (EnrollmentState.ACTIVE, EnrollmentOutcome.NEW, "insert"),
    EnrollmentState.INACTIVE: (
        EnrollmentState.ACTIVE,
        EnrollmentOutcome.REACTIVATED,
        "reactivate",
    ),
    EnrollmentState.ACTIVE: (
        EnrollmentState.ACTIVE,
        EnrollmentOutcome.ALREADY_ENROLLED,
        None,
    ),
}


def order_transition(state, event: OrderEvent) -> OrderTransition:
    state = OrderStatus(state)
    try:
        next_state, effects = ORDER_TRANSITIONS[(state, event)]
    except KeyError:
        raise IllegalTransition(state, event)
    return OrderTransition(
        previous=state,
        next=next_state,
        changed=next_state != state,
        effects=effects,
    )


def enrollment_transition(state: EnrollmentState) -> EnrollmentTransition:
    next_state, outcome, write = ENROLLMENT_TRANSITIONS[state]
    return EnrollmentTransition(
        previous=state, next=next_state, outcome=outcome, write=write
    )


def enrollment_state_of(enrollment) -> EnrollmentState:
    if enrollment is None:
        return EnrollmentState.ABSENT
    return EnrollmentState.ACTIVE if enrollment.is_active else EnrollmentState.INACTIVE
