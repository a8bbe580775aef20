"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``DispatchNegotiation``: enforces the one-shot
  lifecycle (PENDING -> ACCEPTED | REJECTED | TIMED_OUT | CANCELLED).
- ``RiderRecord`` / ``LocationLogEntry`` / ``Branch`` are read-only
  snapshots handed over by the stores; ``RiderCandidate`` is rebuilt on
  every locate call and never cached.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from .enums import NEGOTIATION_TRANSITIONS, NegotiationState, PositionSource


class InvalidStateTransition(Exception):
    """Raised when a negotiation state change violates the state machine."""


# ── Value Objects ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class StatusChange:
    """Payload delivered by the notification channel."""

    status: str
    rejection_reason: Optional[str] = None


# ── Store snapshots ───────────────────────────────────────────────────


@dataclass(frozen=True)
class RiderRecord:
    id: str
    full_name: str
    phone: str = ""
    photo_url: Optional[str] = None
    branch_id: Optional[str] = None
    last_known_lat: Optional[float] = None
    last_known_lng: Optional[float] = None
    location_updated_at: Optional[datetime] = None

    @property
    def has_primary_position(self) -> bool:
        return self.last_known_lat is not None and self.last_known_lng is not None


@dataclass(frozen=True)
class LocationLogEntry:
    rider_id: str
    latitude: float
    longitude: float
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class Branch:
    id: str
    name: str = ""
    address: str = ""


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class RiderCandidate:
    id: str
    full_name: str
    phone: str = ""
    photo_url: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    position_source: PositionSource = PositionSource.NONE
    last_updated: Optional[datetime] = None
    distance_km: float = 0.0
    eta_minutes: int = 0
    is_online: bool = False
    total_stock: int = 0
    branch_id: Optional[str] = None
    branch_name: str = ""
    branch_address: str = ""

    @property
    def has_position(self) -> bool:
        return (
            self.position_source != PositionSource.NONE
            and self.latitude is not None
            and self.longitude is not None
        )


@dataclass
class DispatchNegotiation:
    id: str
    requester_id: str
    rider_id: str
    opened_at: datetime
    window_seconds: int = 60
    state: NegotiationState = NegotiationState.PENDING
    rejection_reason: Optional[str] = None
    remaining_seconds: int = field(default=-1)

    def __post_init__(self) -> None:
        if self.remaining_seconds < 0:
            self.remaining_seconds = self.window_seconds

    @property
    def deadline(self) -> datetime:
        return self.opened_at + timedelta(seconds=self.window_seconds)

    @property
    def is_terminal(self) -> bool:
        return self.state != NegotiationState.PENDING

    def transition_to(
        self, new_state: NegotiationState, reason: Optional[str] = None
    ) -> None:
        """Move to *new_state* if the transition is legal, else raise."""
        allowed = NEGOTIATION_TRANSITIONS.get(self.state, set())
        if new_state not in allowed:
            raise InvalidStateTransition(
                f"Cannot transition from {self.state} to {new_state}"
            )
        self.state = new_state
        if new_state == NegotiationState.REJECTED:
            self.rejection_reason = reason
