"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 3 branches around Jakarta
  - 6 riders: fresh GPS fixes, a stale fix, one known only from the
    location log, and one with no position at all
  - location history rows and a small stock ledger per rider
  - 2 customer profiles to order with
"""

import asyncio
from datetime import datetime, timedelta, timezone

from sqlalchemy import text

from zeger_dispatch.infrastructure.database import async_session_factory, dispose_engine
from zeger_dispatch.infrastructure.models import (
    BranchModel,
    InventoryModel,
    ProfileModel,
    RiderLocationModel,
)

NOW = datetime.now(timezone.utc)

BRANCHES = [
    {"name": "Zeger Kemang", "address": "Jl. Kemang Raya No. 8, Jakarta Selatan"},
    {"name": "Zeger Menteng", "address": "Jl. HOS Cokroaminoto No. 51, Jakarta Pusat"},
    {"name": "Zeger Kelapa Gading", "address": "Jl. Boulevard Raya, Jakarta Utara"},
]

# (name, phone, branch index, primary position, minutes since fix)
RIDERS = [
    ("Budi Santoso", "081234567801", 0, (-6.2088, 106.8456), 1),
    ("Siti Rahmawati", "081234567802", 1, (-6.1751, 106.8650), 4),
    ("Agus Prasetyo", "081234567803", 0, (-6.2615, 106.7837), 8),
    ("Dewi Lestari", "081234567804", 2, (-6.2297, 106.9239), 180),
    ("Rizky Hidayat", "081234567805", 1, None, None),
    ("Hendra Gunawan", "081234567806", 2, None, None),
]

# Location history for riders without a primary fix (index -> log rows)
LOCATION_LOG = {
    4: [(-6.3011, 106.8165, 30), (-6.2990, 106.8170, 3)],
}

STOCK = ["Kopi Susu Gula Aren", "Americano", "Caramel Latte"]

CUSTOMERS = [
    {"full_name": "Andi Wijaya", "phone": "081298765401"},
    {"full_name": "Putri Maharani", "phone": "081298765402"},
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM profiles"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Branches ──────────────────────────────────────────────────
        branch_models = [BranchModel(**b) for b in BRANCHES]
        session.add_all(branch_models)
        await session.flush()
        print(f"  Created {len(branch_models)} branches")

        # ── Riders ────────────────────────────────────────────────────
        rider_models = []
        for name, phone, branch_idx, position, minutes_ago in RIDERS:
            m = ProfileModel(
                full_name=name,
                phone=phone,
                role="rider",
                is_active=True,
                branch_id=branch_models[branch_idx].id,
                last_known_lat=position[0] if position else None,
                last_known_lng=position[1] if position else None,
                location_updated_at=(
                    NOW - timedelta(minutes=minutes_ago) if minutes_ago is not None else None
                ),
            )
            session.add(m)
            rider_models.append(m)
        await session.flush()
        print(f"  Created {len(rider_models)} riders")

        # ── Location log ──────────────────────────────────────────────
        log_rows = 0
        for rider_idx, rows in LOCATION_LOG.items():
            for lat, lng, minutes_ago in rows:
                session.add(
                    RiderLocationModel(
                        rider_id=rider_models[rider_idx].id,
                        latitude=lat,
                        longitude=lng,
                        updated_at=NOW - timedelta(minutes=minutes_ago),
                    )
                )
                log_rows += 1
        print(f"  Created {log_rows} location log rows")

        # ── Inventory ─────────────────────────────────────────────────
        for i, rider in enumerate(rider_models):
            for j, product in enumerate(STOCK):
                session.add(
                    InventoryModel(
                        rider_id=rider.id,
                        product_name=product,
                        stock_quantity=(i * 3 + j * 5) % 12,
                    )
                )
        print(f"  Stocked {len(rider_models)} riders")

        # ── Customers ─────────────────────────────────────────────────
        for c in CUSTOMERS:
            session.add(ProfileModel(role="customer", **c))
        print(f"  Created {len(CUSTOMERS)} customers")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await dispose_engine()


if __name__ == "__main__":
    asyncio.run(main())
