"""
Final Fare & Earnings
=====================

Final fare precedence
---------------------
1. Fare supplied with the completion event (metered / adjusted by ops).
2. Fare already recorded on the booking.
3. Price estimate captured at request time.
4. Base_Fare + Distance x Rate_Per_KM when both endpoints are geocoded.
5. 0.

Driver earnings = Fare - Fare x Commission_Rate

Complexity: O(1).
"""

from __future__ import annotations

from typing import Optional

from .distance import distance_km
from .entities import Booking


class FareCalculator:
    """Used by the lifecycle on completion and by refunds on cancellation."""

    def __init__(self, base_fare: float = 3.50, rate_per_km: float = 1.80):
        self.base_fare = base_fare
        self.rate_per_km = rate_per_km

    def distance_fare(self, booking: Booking) -> Optional[float]:
        if booking.pickup is None or booking.dropoff is None:
            return None
        km = distance_km(booking.pickup, booking.dropoff)
        return round(self.base_fare + km * self.rate_per_km, 2)

    def final_fare(self, booking: Booking, supplied: Optional[float] = None) -> float:
        for amount in (supplied, booking.final_fare_amount, booking.price_estimate_amount):
            if amount is not None:
                return round(float(amount), 2)
        return self.distance_fare(booking) or 0.0

    @staticmethod
    def refund_amount(booking: Booking) -> Optional[float]:
        """Recorded fare, else the estimate; ``None`` means refund in full."""
        if booking.final_fare_amount is not None:
            return booking.final_fare_amount
        return booking.price_estimate_amount

    @staticmethod
    def driver_earnings(fare: float, commission_rate: float) -> float:
        commission = fare * commission_rate
        return round(fare - commission, 2)
