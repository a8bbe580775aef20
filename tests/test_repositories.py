"""Repository tests against the in-memory SQLite schema."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from zeger_dispatch.domain.enums import OrderStatus
from zeger_dispatch.domain.errors import EnrichmentDegraded, StoreUnavailable
from zeger_dispatch.infrastructure.models import (
    BranchModel,
    InventoryModel,
    ProfileModel,
    RiderLocationModel,
)
from zeger_dispatch.infrastructure.repositories import (
    RiderRepository,
    SqlDispatchStore,
)

NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


async def _seed(session):
    branch = BranchModel(id="b1", name="Zeger Kemang", address="Jl. Kemang Raya")
    session.add(branch)
    session.add_all(
        [
            ProfileModel(
                id="r1",
                full_name="Budi Santoso",
                role="rider",
                branch_id="b1",
                last_known_lat=-6.2050,
                last_known_lng=106.8050,
                location_updated_at=NOW - timedelta(minutes=2),
            ),
            ProfileModel(id="r2", full_name="Rizky Hidayat", role="rider"),
            ProfileModel(
                id="r3", full_name="Off Duty", role="rider", is_active=False
            ),
            ProfileModel(id="c1", full_name="Andi Wijaya", role="customer"),
        ]
    )
    session.add_all(
        [
            RiderLocationModel(
                rider_id="r2", latitude=-6.30, longitude=106.81,
                updated_at=NOW - timedelta(minutes=30),
            ),
            RiderLocationModel(
                rider_id="r2", latitude=-6.29, longitude=106.82,
                updated_at=NOW - timedelta(minutes=3),
            ),
            RiderLocationModel(
                rider_id="r1", latitude=-6.10, longitude=106.70,
                updated_at=NOW - timedelta(minutes=1),
            ),
        ]
    )
    session.add_all(
        [
            InventoryModel(rider_id="r1", product_name="Americano", stock_quantity=5),
            InventoryModel(rider_id="r1", product_name="Latte", stock_quantity=7),
            InventoryModel(rider_id="r1", product_name="Mocha", stock_quantity=0),
            InventoryModel(rider_id="r2", product_name="Americano", stock_quantity=0),
        ]
    )
    await session.commit()


class TestRiderRepository:
    @pytest.mark.asyncio
    async def test_active_riders_only(self, db_session):
        await _seed(db_session)
        riders = await RiderRepository(db_session).get_active_riders()

        assert sorted(r.id for r in riders) == ["r1", "r2"]
        r1 = next(r for r in riders if r.id == "r1")
        assert r1.has_primary_position
        assert r1.branch_id == "b1"
        assert r1.phone == ""

    @pytest.mark.asyncio
    async def test_get_rider(self, db_session):
        await _seed(db_session)
        repo = RiderRepository(db_session)

        assert (await repo.get_rider("r2")).full_name == "Rizky Hidayat"
        assert await repo.get_rider("r3") is None
        assert await repo.get_rider("c1") is None
        assert await repo.get_rider("missing") is None

    @pytest.mark.asyncio
    async def test_latest_location_per_rider(self, db_session):
        await _seed(db_session)
        latest = await RiderRepository(db_session).get_latest_locations(["r2"])

        assert list(latest) == ["r2"]
        assert (latest["r2"].latitude, latest["r2"].longitude) == (-6.29, 106.82)

    @pytest.mark.asyncio
    async def test_stock_totals_ignore_empty_rows(self, db_session):
        await _seed(db_session)
        totals = await RiderRepository(db_session).get_stock_totals(["r1", "r2"])
        assert totals == {"r1": 12}

    @pytest.mark.asyncio
    async def test_branches(self, db_session):
        await _seed(db_session)
        branches = await RiderRepository(db_session).get_branches(["b1", "nope"])

        assert list(branches) == ["b1"]
        assert branches["b1"].name == "Zeger Kemang"
        assert branches["b1"].address == "Jl. Kemang Raya"

    @pytest.mark.asyncio
    async def test_empty_batches_skip_the_query(self, db_session):
        repo = RiderRepository(db_session)
        assert await repo.get_latest_locations([]) == {}
        assert await repo.get_stock_totals([]) == {}
        assert await repo.get_branches([]) == {}

    @pytest.mark.asyncio
    async def test_driver_errors_are_translated(self, db_session):
        async def broken_execute(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("connection lost"))

        db_session.execute = broken_execute
        repo = RiderRepository(db_session)

        with pytest.raises(StoreUnavailable):
            await repo.get_active_riders()
        with pytest.raises(EnrichmentDegraded):
            await repo.get_latest_locations(["r1"])
        with pytest.raises(EnrichmentDegraded):
            await repo.get_stock_totals(["r1"])
        with pytest.raises(EnrichmentDegraded):
            await repo.get_branches(["b1"])


class TestSqlDispatchStore:
    @pytest.mark.asyncio
    async def test_create_and_read_status(self, session_factory):
        store = SqlDispatchStore(session_factory)
        dispatch_id = await store.create_dispatch("c1", "r1")

        status = await store.get_status(dispatch_id)
        assert status.status == "pending"
        assert status.rejection_reason is None

        order = await store.get_order(dispatch_id)
        assert (order.user_id, order.rider_id) == ("c1", "r1")

    @pytest.mark.asyncio
    async def test_unknown_record(self, session_factory):
        store = SqlDispatchStore(session_factory)
        assert await store.get_status("missing") is None
        assert await store.update_status("missing", OrderStatus.ACCEPTED) is None

    @pytest.mark.asyncio
    async def test_rider_rejects(self, session_factory):
        store = SqlDispatchStore(session_factory)
        dispatch_id = await store.create_dispatch("c1", "r1")

        order = await store.update_status(
            dispatch_id, OrderStatus.REJECTED, "Sedang sibuk"
        )
        assert order.status == "rejected"

        status = await store.get_status(dispatch_id)
        assert status.status == "rejected"
        assert status.rejection_reason == "Sedang sibuk"

    @pytest.mark.asyncio
    async def test_reason_only_kept_for_rejections(self, session_factory):
        store = SqlDispatchStore(session_factory)
        dispatch_id = await store.create_dispatch("c1", "r1")

        await store.update_status(dispatch_id, OrderStatus.ACCEPTED, "ignored")
        status = await store.get_status(dispatch_id)
        assert status.status == "accepted"
        assert status.rejection_reason is None

    @pytest.mark.asyncio
    async def test_without_redis_riders_are_not_claimed(self, session_factory):
        store = SqlDispatchStore(session_factory)
        first = await store.create_dispatch("c1", "r1")
        second = await store.create_dispatch("c2", "r1")
        assert first != second
