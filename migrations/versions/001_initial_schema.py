"""Initial schema: drivers and bookings.

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
    # ── drivers ───────────────────────────────────────────────────────
    op.create_table(
        "drivers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(120), nullable=True),
        sa.Column("is_online", sa.Boolean, default=False, nullable=False),
        sa.Column("last_lat", sa.Float, nullable=True),
        sa.Column("last_lng", sa.Float, nullable=True),
        sa.Column("location_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("wheelchair_capable", sa.Boolean, default=False, nullable=False),
        sa.Column("rating", sa.Float, nullable=True),
        sa.Column("commission_rate", sa.Float, default=0.15, nullable=False),
        sa.Column("total_earnings", sa.Float, default=0.0, nullable=False),
        sa.Column("pending_payout", sa.Float, default=0.0, nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_drivers_online", "drivers", ["is_online"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("rider_id", sa.String(64), nullable=False),
        sa.Column(
            "driver_id", sa.String(36), sa.ForeignKey("drivers.id"), nullable=True
        ),
        sa.Column(
            "status",
            sa.Enum(
                "REQUESTED",
                "ASSIGNED",
                "EN_ROUTE",
                "ARRIVED",
                "IN_PROGRESS",
                "COMPLETED",
                "CANCELED",
                name="bookingstatus",
            ),
            default="REQUESTED",
            nullable=False,
        ),
        sa.Column("pickup_address", sa.String(255), nullable=False, server_default=""),
        sa.Column("dropoff_address", sa.String(255), nullable=False, server_default=""),
        sa.Column("pickup_lat", sa.Float, nullable=True),
        sa.Column("pickup_lng", sa.Float, nullable=True),
        sa.Column("dropoff_lat", sa.Float, nullable=True),
        sa.Column("dropoff_lng", sa.Float, nullable=True),
        sa.Column("requires_wheelchair", sa.Boolean, default=False, nullable=False),
        sa.Column("scheduled_pickup_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rider_email", sa.String(255), nullable=True),
        sa.Column("payment_intent_id", sa.String(255), nullable=True),
        sa.Column("price_estimate_amount", sa.Float, nullable=True),
        sa.Column("final_fare_amount", sa.Float, nullable=True),
        sa.Column("fare_currency", sa.String(3), nullable=False, server_default="GBP"),
        sa.Column("estimated_distance_km", sa.Float, nullable=True),
        sa.Column("estimated_duration_min", sa.Integer, nullable=True),
        sa.Column("pin_code", sa.String(6), nullable=False),
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
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_rider", "bookings", ["rider_id"])
    op.create_index("idx_bookings_driver", "bookings", ["driver_id"])


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("drivers")
    op.execute("DROP TYPE IF EXISTS bookingstatus")
