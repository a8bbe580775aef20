"""Domain enumerations and state-transition rules."""

import enum


class NegotiationState(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


# State machine: a negotiation leaves PENDING exactly once
NEGOTIATION_TRANSITIONS: dict[NegotiationState, set[NegotiationState]] = {
    NegotiationState.PENDING: {
        NegotiationState.ACCEPTED,
        NegotiationState.REJECTED,
        NegotiationState.TIMED_OUT,
        NegotiationState.CANCELLED,
    },
    NegotiationState.ACCEPTED: set(),
    NegotiationState.REJECTED: set(),
    NegotiationState.TIMED_OUT: set(),
    NegotiationState.CANCELLED: set(),
}


class PositionSource(str, enum.Enum):
    PRIMARY = "primary"
    FALLBACK_LOG = "fallback_log"
    NONE = "none"


class OrderStatus(str, enum.Enum):
    """Values of ``customer_orders.status`` written by the app surfaces."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Order statuses that settle a pending negotiation
ACCEPTED_ORDER_STATUSES = {OrderStatus.ACCEPTED.value, OrderStatus.IN_PROGRESS.value}
REJECTED_ORDER_STATUSES = {OrderStatus.REJECTED.value}
