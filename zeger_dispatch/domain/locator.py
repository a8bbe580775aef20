"""
Nearby Rider Locator
====================

1. **Eligibility scan**  -- every active rider profile (unordered, unpaged).
2. **Position resolve**  -- primary ``last_known_*`` fields, else the most
   recent row of the rider's location log, else the rider is dropped.
3. **Distance / ETA**    -- haversine from the requester, 20 km/h ETA.
4. **Online flag**       -- primary ``location_updated_at`` younger than the
   staleness threshold (10 min).  A rider resolved from the location log is
   judged by the primary timestamp too, so a fresh log row alone never
   makes a rider online.
5. **Radius filter**     -- ``distance_km <= radius_km``.
6. **Ranking**           -- online first, then ascending distance.  Python's
   sort is stable, so ties keep the order the store returned them in.
7. **Enrichment**        -- stock totals and branch info in two batch
   lookups; a failed lookup leaves the defaults (0 / "") in place.

Complexity
----------
Let N = active riders, K = riders within the radius.

* Scan + resolve:  O(N) plus one batch query for riders without a primary fix
* Ranking:         O(K log K)
* Enrichment:      two batch queries, O(K) to apply
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from zeger_dispatch.config import settings

from .distance import eta_minutes, haversine_km
from .entities import Location, LocationLogEntry, RiderCandidate, RiderRecord
from .enums import PositionSource
from .errors import EnrichmentDegraded, InvalidSelection
from .ports import RiderStore

logger = logging.getLogger(__name__)


def _as_utc(moment: datetime) -> datetime:
    # SQLite hands back naive timestamps; they are stored as UTC
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def resolve_position(
    rider: RiderRecord, latest_log: Optional[LocationLogEntry] = None
) -> tuple[Optional[Location], PositionSource]:
    """Pick the best-known position for *rider*."""
    if rider.has_primary_position:
        return (
            Location(rider.last_known_lat, rider.last_known_lng),
            PositionSource.PRIMARY,
        )
    if latest_log is not None:
        return (
            Location(latest_log.latitude, latest_log.longitude),
            PositionSource.FALLBACK_LOG,
        )
    return None, PositionSource.NONE


def is_online(
    updated_at: Optional[datetime],
    now: datetime,
    staleness_seconds: int = 600,
) -> bool:
    if updated_at is None:
        return False
    age = _as_utc(now) - _as_utc(updated_at)
    return age < timedelta(seconds=staleness_seconds)


def rank_candidates(candidates: Iterable[RiderCandidate]) -> list[RiderCandidate]:
    """Online riders first, each group by ascending distance (stable)."""
    return sorted(candidates, key=lambda c: (not c.is_online, c.distance_km))


def build_candidate(
    rider: RiderRecord,
    position: Location,
    source: PositionSource,
    origin: Location,
    now: datetime,
    *,
    latest_log: Optional[LocationLogEntry] = None,
    staleness_seconds: int = 600,
    speed_kmh: float = 20.0,
) -> RiderCandidate:
    distance = haversine_km(
        origin.latitude, origin.longitude, position.latitude, position.longitude
    )
    if source == PositionSource.FALLBACK_LOG and latest_log is not None:
        last_updated = latest_log.updated_at
    else:
        last_updated = rider.location_updated_at

    return RiderCandidate(
        id=rider.id,
        full_name=rider.full_name,
        phone=rider.phone or "",
        photo_url=rider.photo_url,
        latitude=position.latitude,
        longitude=position.longitude,
        position_source=source,
        last_updated=last_updated,
        distance_km=distance,
        eta_minutes=eta_minutes(distance, speed_kmh),
        is_online=is_online(rider.location_updated_at, now, staleness_seconds),
        branch_id=rider.branch_id,
    )


class RiderLocator:
    """Read-only query composition over a ``RiderStore`` snapshot."""

    def __init__(
        self,
        store: RiderStore,
        *,
        default_radius_km: Optional[float] = None,
        staleness_seconds: Optional[int] = None,
        speed_kmh: Optional[float] = None,
    ):
        self.store = store
        self.default_radius_km = (
            default_radius_km
            if default_radius_km is not None
            else settings.search_radius_km
        )
        self.staleness_seconds = (
            staleness_seconds
            if staleness_seconds is not None
            else settings.online_staleness_seconds
        )
        self.speed_kmh = speed_kmh if speed_kmh is not None else settings.assumed_speed_kmh

    async def locate(
        self,
        requester_lat: float,
        requester_lng: float,
        radius_km: Optional[float] = None,
        *,
        now: Optional[datetime] = None,
    ) -> list[RiderCandidate]:
        """Ranked riders within *radius_km* of the requester."""
        radius = radius_km if radius_km is not None else self.default_radius_km
        now = now or datetime.now(timezone.utc)
        origin = Location(requester_lat, requester_lng)

        riders = await self.store.get_active_riders()
        fallback = await self._fallback_positions(riders)

        candidates: list[RiderCandidate] = []
        for rider in riders:
            latest = fallback.get(rider.id)
            position, source = resolve_position(rider, latest)
            if position is None:
                logger.debug("Rider %s has no resolvable position, skipped", rider.id)
                continue
            candidates.append(
                build_candidate(
                    rider,
                    position,
                    source,
                    origin,
                    now,
                    latest_log=latest,
                    staleness_seconds=self.staleness_seconds,
                    speed_kmh=self.speed_kmh,
                )
            )

        nearby = rank_candidates(c for c in candidates if c.distance_km <= radius)
        await self._enrich(nearby)

        logger.info(
            "Located %d/%d riders within %.1f km of (%.4f, %.4f)",
            len(nearby), len(riders), radius, requester_lat, requester_lng,
        )
        return nearby

    async def candidate_for(
        self,
        rider_id: str,
        requester_lat: float,
        requester_lng: float,
        *,
        now: Optional[datetime] = None,
    ) -> RiderCandidate:
        """Build the candidate for an explicitly selected rider."""
        rider = await self.store.get_rider(rider_id)
        if rider is None:
            raise InvalidSelection(f"Rider {rider_id} is not an active rider")

        fallback = await self._fallback_positions([rider])
        latest = fallback.get(rider.id)
        position, source = resolve_position(rider, latest)
        if position is None:
            raise InvalidSelection(f"Rider {rider_id} has no resolvable position")

        candidate = build_candidate(
            rider,
            position,
            source,
            Location(requester_lat, requester_lng),
            now or datetime.now(timezone.utc),
            latest_log=latest,
            staleness_seconds=self.staleness_seconds,
            speed_kmh=self.speed_kmh,
        )
        await self._enrich([candidate])
        return candidate

    # ── Internals ─────────────────────────────────────────────────────

    async def _fallback_positions(
        self, riders: list[RiderRecord]
    ) -> dict[str, LocationLogEntry]:
        missing = [r.id for r in riders if not r.has_primary_position]
        if not missing:
            return {}
        try:
            return await self.store.get_latest_locations(missing)
        except EnrichmentDegraded:
            logger.warning(
                "Location log unavailable; %d riders without a primary fix dropped",
                len(missing),
            )
            return {}

    async def _enrich(self, candidates: list[RiderCandidate]) -> None:
        if not candidates:
            return

        try:
            totals = await self.store.get_stock_totals([c.id for c in candidates])
        except EnrichmentDegraded:
            logger.warning("Stock totals unavailable; defaulting to 0")
            totals = {}

        branch_ids = {c.branch_id for c in candidates if c.branch_id}
        branches = {}
        if branch_ids:
            try:
                branches = await self.store.get_branches(branch_ids)
            except EnrichmentDegraded:
                logger.warning("Branch info unavailable; leaving branch fields empty")

        for candidate in candidates:
            candidate.total_stock = max(0, int(totals.get(candidate.id, 0)))
            branch = branches.get(candidate.branch_id) if candidate.branch_id else None
            if branch is not None:
                candidate.branch_name = branch.name or ""
                candidate.branch_address = branch.address or ""
