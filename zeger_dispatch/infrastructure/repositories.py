"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

``RiderRepository`` receives an ``AsyncSession`` (unit-of-work) from the
request and implements ``RiderStore``.  ``SqlDispatchStore`` outlives any
single request (negotiations run in the background), so it opens its own
short sessions from the session factory, like the workers do.

Driver errors are translated at this boundary: the eligibility scan and
dispatch writes raise ``StoreUnavailable``; secondary lookups raise
``EnrichmentDegraded``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterable, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .locks import DistributedLock
from .models import (
    BranchModel,
    CustomerOrderModel,
    InventoryModel,
    ProfileModel,
    RiderLocationModel,
)
from zeger_dispatch.domain.entities import (
    Branch,
    DispatchNegotiation,
    LocationLogEntry,
    RiderRecord,
    StatusChange,
)
from zeger_dispatch.domain.enums import OrderStatus
from zeger_dispatch.domain.errors import (
    EnrichmentDegraded,
    RiderBusy,
    StoreUnavailable,
)
from zeger_dispatch.domain.ports import DispatchStore, RiderStore

logger = logging.getLogger(__name__)

RIDER_ROLE = "rider"


@contextmanager
def _translate(error_cls: type[Exception], what: str):
    try:
        yield
    except (SQLAlchemyError, OSError) as exc:
        raise error_cls(f"{what} failed: {exc}") from exc


def _rider_record(profile: ProfileModel) -> RiderRecord:
    return RiderRecord(
        id=profile.id,
        full_name=profile.full_name,
        phone=profile.phone or "",
        photo_url=profile.photo_url,
        branch_id=profile.branch_id,
        last_known_lat=profile.last_known_lat,
        last_known_lng=profile.last_known_lng,
        location_updated_at=profile.location_updated_at,
    )


class RiderRepository(RiderStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_active_riders(self) -> list[RiderRecord]:
        with _translate(StoreUnavailable, "Fetching active riders"):
            result = await self.session.execute(
                select(ProfileModel).where(
                    ProfileModel.role == RIDER_ROLE,
                    ProfileModel.is_active.is_(True),
                )
            )
            return [_rider_record(p) for p in result.scalars().all()]

    async def get_rider(self, rider_id: str) -> Optional[RiderRecord]:
        with _translate(StoreUnavailable, f"Fetching rider {rider_id}"):
            result = await self.session.execute(
                select(ProfileModel).where(
                    ProfileModel.id == rider_id,
                    ProfileModel.role == RIDER_ROLE,
                    ProfileModel.is_active.is_(True),
                )
            )
            profile = result.scalar_one_or_none()
        return _rider_record(profile) if profile else None

    async def get_latest_locations(
        self, rider_ids: Iterable[str]
    ) -> dict[str, LocationLogEntry]:
        ids = list(rider_ids)
        if not ids:
            return {}
        with _translate(EnrichmentDegraded, "Fetching location log"):
            result = await self.session.execute(
                select(RiderLocationModel)
                .where(RiderLocationModel.rider_id.in_(ids))
                .order_by(
                    RiderLocationModel.rider_id,
                    RiderLocationModel.updated_at.desc(),
                )
            )
            rows = result.scalars().all()

        latest: dict[str, LocationLogEntry] = {}
        for row in rows:
            if row.rider_id not in latest:
                latest[row.rider_id] = LocationLogEntry(
                    rider_id=row.rider_id,
                    latitude=row.latitude,
                    longitude=row.longitude,
                    updated_at=row.updated_at,
                )
        return latest

    async def get_stock_totals(self, rider_ids: Iterable[str]) -> dict[str, int]:
        ids = list(rider_ids)
        if not ids:
            return {}
        with _translate(EnrichmentDegraded, "Summing rider stock"):
            result = await self.session.execute(
                select(InventoryModel.rider_id, func.sum(InventoryModel.stock_quantity))
                .where(
                    InventoryModel.rider_id.in_(ids),
                    InventoryModel.stock_quantity > 0,
                )
                .group_by(InventoryModel.rider_id)
            )
            return {rider_id: int(total or 0) for rider_id, total in result.all()}

    async def get_branches(self, branch_ids: Iterable[str]) -> dict[str, Branch]:
        ids = list(branch_ids)
        if not ids:
            return {}
        with _translate(EnrichmentDegraded, "Fetching branches"):
            result = await self.session.execute(
                select(BranchModel).where(BranchModel.id.in_(ids))
            )
            return {
                b.id: Branch(id=b.id, name=b.name or "", address=b.address or "")
                for b in result.scalars().all()
            }


class SqlDispatchStore(DispatchStore):
    """``customer_orders`` access plus the per-rider claim in Redis."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        redis: Optional[aioredis.Redis] = None,
        lock_ttl_seconds: int = 65,
    ):
        self.session_factory = session_factory
        self.redis = redis
        self.lock_ttl_seconds = lock_ttl_seconds
        self._claims: dict[str, DistributedLock] = {}

    async def create_dispatch(self, requester_id: str, rider_id: str) -> str:
        claim = await self._claim(rider_id)
        try:
            with _translate(StoreUnavailable, "Creating dispatch record"):
                async with self.session_factory() as session:
                    order = CustomerOrderModel(
                        user_id=requester_id,
                        rider_id=rider_id,
                        status=OrderStatus.PENDING.value,
                    )
                    session.add(order)
                    await session.commit()
                    return order.id
        except StoreUnavailable:
            if claim is not None:
                await self._drop_claim(rider_id)
            raise

    async def get_status(self, dispatch_id: str) -> Optional[StatusChange]:
        order = await self.get_order(dispatch_id)
        if order is None:
            return None
        return StatusChange(order.status, order.rejection_reason)

    async def get_order(self, dispatch_id: str) -> Optional[CustomerOrderModel]:
        with _translate(StoreUnavailable, f"Reading dispatch {dispatch_id}"):
            async with self.session_factory() as session:
                return await session.get(CustomerOrderModel, dispatch_id)

    async def update_status(
        self,
        dispatch_id: str,
        status: OrderStatus,
        rejection_reason: Optional[str] = None,
    ) -> Optional[CustomerOrderModel]:
        """Rider-side write: settle a pending order as accepted / rejected."""
        with _translate(StoreUnavailable, f"Updating dispatch {dispatch_id}"):
            async with self.session_factory() as session:
                order = await session.get(CustomerOrderModel, dispatch_id)
                if order is None:
                    return None
                order.status = status.value
                order.rejection_reason = (
                    rejection_reason if status == OrderStatus.REJECTED else None
                )
                await session.commit()
                return order

    async def release(self, negotiation: DispatchNegotiation) -> None:
        await self._drop_claim(negotiation.rider_id)

    # ── Rider claim ───────────────────────────────────────────────────

    async def _claim(self, rider_id: str) -> Optional[DistributedLock]:
        if self.redis is None:
            return None
        lock = DistributedLock(self.redis, f"rider:{rider_id}", self.lock_ttl_seconds)
        try:
            acquired = await lock.acquire()
        except RedisError as exc:
            raise StoreUnavailable(f"Claiming rider {rider_id} failed: {exc}") from exc
        if not acquired:
            raise RiderBusy(f"Rider {rider_id} is already handling another request")
        self._claims[rider_id] = lock
        return lock

    async def _drop_claim(self, rider_id: str) -> None:
        lock = self._claims.pop(rider_id, None)
        if lock is None:
            return
        try:
            await lock.release()
        except RedisError:
            logger.warning(
                "Could not release claim on rider %s; it expires in %ds",
                rider_id, self.lock_ttl_seconds,
            )
