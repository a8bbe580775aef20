"""Unit tests for negotiation state transitions (State Pattern)."""

from datetime import datetime, timedelta, timezone

import pytest

from zeger_dispatch.domain.entities import DispatchNegotiation, InvalidStateTransition
from zeger_dispatch.domain.enums import NegotiationState

TERMINAL = [
    NegotiationState.ACCEPTED,
    NegotiationState.REJECTED,
    NegotiationState.TIMED_OUT,
    NegotiationState.CANCELLED,
]


def _negotiation(**kwargs) -> DispatchNegotiation:
    return DispatchNegotiation(
        id="order-1",
        requester_id="customer-1",
        rider_id="rider-1",
        opened_at=datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc),
        **kwargs,
    )


class TestNegotiationStateMachine:
    def test_initial_state_is_pending(self):
        negotiation = _negotiation()
        assert negotiation.state == NegotiationState.PENDING
        assert not negotiation.is_terminal

    def test_deadline_is_window_after_open(self):
        negotiation = _negotiation()
        assert negotiation.deadline - negotiation.opened_at == timedelta(seconds=60)
        assert negotiation.remaining_seconds == 60

    def test_custom_window(self):
        negotiation = _negotiation(window_seconds=30)
        assert negotiation.remaining_seconds == 30

    # ── Valid transitions ─────────────────────────────────────────

    @pytest.mark.parametrize("state", TERMINAL)
    def test_pending_to_terminal(self, state):
        negotiation = _negotiation()
        negotiation.transition_to(state)
        assert negotiation.state == state
        assert negotiation.is_terminal

    def test_rejection_keeps_reason(self):
        negotiation = _negotiation()
        negotiation.transition_to(NegotiationState.REJECTED, reason="Sedang sibuk")
        assert negotiation.rejection_reason == "Sedang sibuk"

    def test_reason_ignored_for_other_states(self):
        negotiation = _negotiation()
        negotiation.transition_to(NegotiationState.ACCEPTED, reason="ignored")
        assert negotiation.rejection_reason is None

    # ── Invalid transitions ───────────────────────────────────────

    @pytest.mark.parametrize("state", TERMINAL)
    def test_terminal_cannot_return_to_pending(self, state):
        negotiation = _negotiation(state=state)
        with pytest.raises(InvalidStateTransition):
            negotiation.transition_to(NegotiationState.PENDING)

    def test_accepted_cannot_time_out(self):
        negotiation = _negotiation(state=NegotiationState.ACCEPTED)
        with pytest.raises(InvalidStateTransition):
            negotiation.transition_to(NegotiationState.TIMED_OUT)

    def test_cancelled_cannot_be_accepted(self):
        negotiation = _negotiation(state=NegotiationState.CANCELLED)
        with pytest.raises(InvalidStateTransition):
            negotiation.transition_to(NegotiationState.ACCEPTED)
