"""
SQLAlchemy ORM models.

Tables
------
* ``drivers``   -- vehicle operators; online flag and location are written
                   by the driver heartbeat, earnings by the ledger
* ``bookings``  -- ride requests; status changes only via conditional update

Indexes
-------
* **B-Tree** on ``bookings.status``, ``rider_id``, ``driver_id`` and on
  ``drivers.is_online`` for the look-ups the coordinator performs.
"""

import uuid

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)

from .database import Base
from havenride.domain.enums import BookingStatus


def _uuid() -> str:
    return str(uuid.uuid4())


class DriverModel(Base):
    __tablename__ = "drivers"

    id = Column(String(36), primary_key=True, default=_uuid)
    name = Column(String(120), nullable=True)
    is_online = Column(Boolean, default=False, nullable=False)
    last_lat = Column(Float, nullable=True)
    last_lng = Column(Float, nullable=True)
    location_updated_at = Column(DateTime(timezone=True), nullable=True)
    wheelchair_capable = Column(Boolean, default=False, nullable=False)
    rating = Column(Float, nullable=True)
    commission_rate = Column(Float, default=0.15, nullable=False)
    total_earnings = Column(Float, default=0.0, nullable=False)
    pending_payout = Column(Float, default=0.0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (Index("idx_drivers_online", "is_online"),)


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=_uuid)
    rider_id = Column(String(64), nullable=False)
    driver_id = Column(String(36), ForeignKey("drivers.id"), nullable=True)
    status = Column(
        Enum(BookingStatus), default=BookingStatus.REQUESTED, nullable=False
    )

    pickup_address = Column(String(255), nullable=False, default="")
    dropoff_address = Column(String(255), nullable=False, default="")
    # Null until geocoded
    pickup_lat = Column(Float, nullable=True)
    pickup_lng = Column(Float, nullable=True)
    dropoff_lat = Column(Float, nullable=True)
    dropoff_lng = Column(Float, nullable=True)

    requires_wheelchair = Column(Boolean, default=False, nullable=False)
    scheduled_pickup_time = Column(DateTime(timezone=True), nullable=True)
    rider_email = Column(String(255), nullable=True)

    payment_intent_id = Column(String(255), nullable=True)
    price_estimate_amount = Column(Float, nullable=True)
    final_fare_amount = Column(Float, nullable=True)
    fare_currency = Column(String(3), default="GBP", nullable=False)
    estimated_distance_km = Column(Float, nullable=True)
    estimated_duration_min = Column(Integer, nullable=True)
    pin_code = Column(String(6), nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_rider", "rider_id"),
        Index("idx_bookings_driver", "driver_id"),
    )
