"""
SQLAlchemy ORM models  (maps to the hosted PostgreSQL schema).

Tables
------
* ``branches``         -- outlets a rider is affiliated with
* ``profiles``         -- app users; riders carry their last known position
* ``rider_locations``  -- time-ordered location history per rider
* ``inventory``        -- per-rider stock ledger rows
* ``customer_orders``  -- the dispatch record a negotiation is attached to

Indexes
-------
* **B-Tree** on ``(role, is_active)`` for the eligibility scan.
* **B-Tree** on ``(rider_id, updated_at)`` so the latest log row per rider
  is an index walk.
* **B-Tree** on ``inventory.rider_id``, ``customer_orders.rider_id`` and
  ``customer_orders.status``.
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)

from .database import Base
from zeger_dispatch.domain.enums import OrderStatus


def _uuid() -> str:
    return str(uuid.uuid4())


class BranchModel(Base):
    __tablename__ = "branches"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(120), nullable=False)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ProfileModel(Base):
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=_uuid)
    full_name = Column(String(120), nullable=False)
    phone = Column(String(32), nullable=True)
    photo_url = Column(Text, nullable=True)
    role = Column(String(32), nullable=False, default="customer")
    is_active = Column(Boolean, nullable=False, default=True)
    branch_id = Column(String(36), ForeignKey("branches.id"), nullable=True)

    # Written by the rider app's background tracker
    last_known_lat = Column(Float, nullable=True)
    last_known_lng = Column(Float, nullable=True)
    location_updated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_profiles_role_active", "role", "is_active"),)


class RiderLocationModel(Base):
    __tablename__ = "rider_locations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rider_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    accuracy = Column(Float, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        Index("idx_rider_locations_rider_time", "rider_id", "updated_at"),
    )


class InventoryModel(Base):
    __tablename__ = "inventory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rider_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    product_name = Column(String(120), nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=0)

    __table_args__ = (Index("idx_inventory_rider", "rider_id"),)


class CustomerOrderModel(Base):
    __tablename__ = "customer_orders"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), nullable=False)
    rider_id = Column(String(36), ForeignKey("profiles.id"), nullable=False)
    status = Column(String(20), nullable=False, default=OrderStatus.PENDING.value)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_customer_orders_rider", "rider_id"),
        Index("idx_customer_orders_status", "status"),
    )
