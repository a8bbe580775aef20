"""Initial schema: branches, rider profiles, location log, inventory, orders.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── branches ──────────────────────────────────────────────────────
    op.create_table(
        "branches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── profiles ──────────────────────────────────────────────────────
    op.create_table(
        "profiles",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("full_name", sa.String(120), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("photo_url", sa.Text, nullable=True),
        sa.Column("role", sa.String(32), nullable=False, server_default="customer"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "branch_id", sa.String(36), sa.ForeignKey("branches.id"), nullable=True
        ),
        sa.Column("last_known_lat", sa.Float, nullable=True),
        sa.Column("last_known_lng", sa.Float, nullable=True),
        sa.Column("location_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "idx_profiles_role_active", "profiles", ["role", "is_active"]
    )

    # ── rider_locations ───────────────────────────────────────────────
    op.create_table(
        "rider_locations",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "rider_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False
        ),
        sa.Column("latitude", sa.Float, nullable=False),
        sa.Column("longitude", sa.Float, nullable=False),
        sa.Column("accuracy", sa.Float, nullable=True),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index(
        "idx_rider_locations_rider_time",
        "rider_locations",
        ["rider_id", "updated_at"],
    )

    # ── inventory ─────────────────────────────────────────────────────
    op.create_table(
        "inventory",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "rider_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False
        ),
        sa.Column("product_name", sa.String(120), nullable=True),
        sa.Column("stock_quantity", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("idx_inventory_rider", "inventory", ["rider_id"])

    # ── customer_orders ───────────────────────────────────────────────
    op.create_table(
        "customer_orders",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column(
            "rider_id", sa.String(36), sa.ForeignKey("profiles.id"), nullable=False
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text, nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_customer_orders_rider", "customer_orders", ["rider_id"])
    op.create_index("idx_customer_orders_status", "customer_orders", ["status"])


def downgrade() -> None:
    op.drop_table("customer_orders")
    op.drop_table("inventory")
    op.drop_table("rider_locations")
    op.drop_table("profiles")
    op.drop_table("branches")
