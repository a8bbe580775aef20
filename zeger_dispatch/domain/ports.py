"""
Store and channel abstractions consumed by the domain services.

The locator and the negotiator only see these interfaces; the SQLAlchemy
repositories and the Redis channel in ``infrastructure`` implement them,
and the tests swap in in-memory versions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional

from .entities import (
    Branch,
    DispatchNegotiation,
    LocationLogEntry,
    RiderRecord,
    StatusChange,
)


class RiderStore(ABC):
    @abstractmethod
    async def get_active_riders(self) -> list[RiderRecord]:
        """All riders with role ``rider`` and ``is_active``; raises StoreUnavailable."""

    @abstractmethod
    async def get_rider(self, rider_id: str) -> Optional[RiderRecord]:
        """One active rider by id, or None; raises StoreUnavailable."""

    @abstractmethod
    async def get_latest_locations(
        self, rider_ids: Iterable[str]
    ) -> dict[str, LocationLogEntry]:
        """Most recent location-log row per rider; raises EnrichmentDegraded."""

    @abstractmethod
    async def get_stock_totals(self, rider_ids: Iterable[str]) -> dict[str, int]:
        """Sum of positive stock quantities per rider; raises EnrichmentDegraded."""

    @abstractmethod
    async def get_branches(self, branch_ids: Iterable[str]) -> dict[str, Branch]:
        """Branch display fields by id; raises EnrichmentDegraded."""


class DispatchStore(ABC):
    @abstractmethod
    async def create_dispatch(self, requester_id: str, rider_id: str) -> str:
        """Persist a pending dispatch record and return its id."""

    @abstractmethod
    async def get_status(self, dispatch_id: str) -> Optional[StatusChange]:
        """Current status of the record, or None if it does not exist."""

    @abstractmethod
    async def release(self, negotiation: DispatchNegotiation) -> None:
        """Drop any claim taken on the rider when the record was created."""


class Subscription(ABC):
    """Async iterator of ``StatusChange`` for one record."""

    def __aiter__(self) -> "Subscription":
        return self

    @abstractmethod
    async def __anext__(self) -> StatusChange: ...

    @abstractmethod
    async def close(self) -> None: ...


class NotificationChannel(ABC):
    @abstractmethod
    async def subscribe(self, record_id: str) -> Subscription:
        """Start receiving changes for *record_id*; raises ChannelUnavailable."""

    @abstractmethod
    async def publish(self, record_id: str, change: StatusChange) -> None:
        """Broadcast *change* to subscribers of *record_id*."""
