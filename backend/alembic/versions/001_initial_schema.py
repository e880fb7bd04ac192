"""Initial schema: users, vehicles, bookings, notifications with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'customer'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('customer', 'owner', 'admin')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Vehicles table
    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("make", sa.String(100), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("license_plate", sa.String(20), nullable=False, unique=True),
        sa.Column("vehicle_type", sa.String(20), nullable=True),
        sa.Column("color", sa.String(50), nullable=True),
        sa.Column("location_address", sa.String(255), nullable=True),
        sa.Column("listing_type", sa.String(20), nullable=False, server_default=sa.text("'rent'")),
        sa.Column("daily_rate", sa.Numeric(10, 2), nullable=True),
        sa.Column("selling_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'available'")),
        *_timestamps(),
        sa.CheckConstraint("listing_type IN ('rent', 'sale')", name="check_vehicle_listing_type"),
        sa.CheckConstraint(
            "status IN ('available', 'rented', 'maintenance', 'inactive', 'sold')",
            name="check_vehicle_status",
        ),
        sa.CheckConstraint(
            "(listing_type = 'rent' AND daily_rate IS NOT NULL AND selling_price IS NULL) OR "
            "(listing_type = 'sale' AND selling_price IS NOT NULL AND daily_rate IS NULL)",
            name="check_vehicle_price_matches_listing",
        ),
        sa.CheckConstraint("daily_rate IS NULL OR daily_rate >= 0", name="check_daily_rate_non_negative"),
        sa.CheckConstraint("selling_price IS NULL OR selling_price >= 0", name="check_selling_price_non_negative"),
    )
    op.create_index("ix_vehicles_id", "vehicles", ["id"])
    op.create_index("ix_vehicles_owner_id", "vehicles", ["owner_id"])
    # Public browse: "available rentals", "cars for sale"
    op.create_index("ix_vehicles_listing_status", "vehicles", ["listing_type", "status"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("customer_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("vehicle_id", sa.Integer(), sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("pickup_location", sa.String(255), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("payment_transaction_id", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'active', 'completed', 'cancelled', 'disputed')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded')",
            name="check_booking_payment_status",
        ),
        sa.CheckConstraint("end_date >= start_date", name="check_booking_dates_ordered"),
        sa.CheckConstraint("total_amount >= 0", name="check_booking_amount_non_negative"),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_customer_id", "bookings", ["customer_id"])
    # Conflict query: WHERE vehicle_id = ? AND status IN (...) AND range overlaps
    op.create_index("ix_bookings_vehicle_dates", "bookings", ["vehicle_id", "start_date", "end_date"])
    # Maintenance purge: WHERE status = 'cancelled' AND updated_at < ?
    op.create_index("ix_bookings_status_updated", "bookings", ["status", "updated_at"])

    # NO-OVERLAP EXCLUSION CONSTRAINT (PostgreSQL only)
    # Two occupying bookings on one vehicle may not share a calendar day.
    # The service takes a row lock on the vehicle before checking; this makes
    # the store itself reject a second writer that slipped past the check.
    # Ranges are closed on both ends to match the inclusive overlap test.
    if op.get_bind().dialect.name == "postgresql":
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            """
            ALTER TABLE bookings
            ADD CONSTRAINT bookings_no_overlap
            EXCLUDE USING gist (
                vehicle_id WITH =,
                daterange(start_date, end_date, '[]') WITH &&
            )
            WHERE (status IN ('pending', 'confirmed', 'active'))
            """
        )

    # Notifications table
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint(
            "type IN ('booking', 'payment', 'reminder', 'system')",
            name="check_notification_type",
        ),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("bookings")
    op.drop_table("vehicles")
    op.drop_table("users")
