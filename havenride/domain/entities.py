"""
Domain entities.

``Booking`` and ``Driver`` are snapshots of store rows handed to the pure
scoring and lifecycle code.  ``Booking`` refuses to exist in a state where
the driver binding contradicts the status (e.g. a REQUESTED booking that
already has a driver).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .enums import DRIVER_BOUND_STATUSES, TERMINAL_STATUSES, BookingStatus


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class Location:
    latitude: float
    longitude: float

    def __post_init__(self):
        if not -90.0 <= self.latitude <= 90.0:
            raise ValueError(f"latitude out of range: {self.latitude}")
        if not -180.0 <= self.longitude <= 180.0:
            raise ValueError(f"longitude out of range: {self.longitude}")

    @classmethod
    def from_pair(
        cls, lat: Optional[float], lng: Optional[float]
    ) -> Optional["Location"]:
        """Build a location from nullable columns; ``None`` if either is missing."""
        if lat is None or lng is None:
            return None
        return cls(lat, lng)


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class Booking:
    id: str
    rider_id: str
    status: BookingStatus = BookingStatus.REQUESTED
    driver_id: Optional[str] = None
    pickup: Optional[Location] = None
    dropoff: Optional[Location] = None
    requires_wheelchair: bool = False
    scheduled_pickup_time: Optional[datetime] = None
    payment_intent_id: Optional[str] = None
    final_fare_amount: Optional[float] = None
    price_estimate_amount: Optional[float] = None
    fare_currency: str = "GBP"
    pin_code: Optional[str] = None
    pickup_address: str = ""
    dropoff_address: str = ""
    rider_email: Optional[str] = None
    estimated_distance_km: Optional[float] = None
    estimated_duration_min: Optional[int] = None

    def __post_init__(self):
        if self.status in DRIVER_BOUND_STATUSES and self.driver_id is None:
            raise ValueError(f"Booking {self.id} is {self.status.value} without a driver")
        if self.status == BookingStatus.REQUESTED and self.driver_id is not None:
            raise ValueError(f"Booking {self.id} is REQUESTED but bound to a driver")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


@dataclass
class Driver:
    id: str
    online: bool = False
    location: Optional[Location] = None
    location_updated_at: Optional[datetime] = None
    wheelchair_capable: bool = False
    rating: Optional[float] = None
    commission_rate: float = 0.15
    name: Optional[str] = None


@dataclass(frozen=True)
class AssignmentCandidate:
    """One driver's score for one booking.  Never persisted."""

    driver_id: str
    distance_km: float
    distance_score: float
    rating_score: float
    wheelchair_bonus: float
    total_score: float
    driver_rating: Optional[float] = None
    wheelchair_match: bool = False
