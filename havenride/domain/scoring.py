"""
Driver Scoring
==============

Pure functions that decide whether a driver may be offered a booking and,
if so, how good a match they are.

Score
-----
  total = w_distance x distance_score + w_rating x rating_score + wheelchair_bonus

* **distance_score** (0-100): 100 up to 5 km, then linear 100->75 over
  5-10 km, linear 75->50 over 10-20 km, then losing 2 points per km.
* **rating_score** (0-100): ``rating x 20``; unrated drivers get a neutral 50.
* **wheelchair_bonus**: flat bonus when the request needs an accessible
  vehicle and the driver has one.

Default weights: 0.6 / 0.3 / 10.

Complexity: O(1) per driver.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from .distance import distance_km
from .entities import AssignmentCandidate, Booking, Driver
from .exceptions import BookingValidationError

NEUTRAL_RATING_SCORE = 50.0


@dataclass(frozen=True)
class ScoringWeights:
    distance_weight: float = 0.6
    rating_weight: float = 0.3
    wheelchair_bonus: float = 10.0

    @classmethod
    def from_settings(cls, settings) -> "ScoringWeights":
        return cls(
            distance_weight=settings.scoring_distance_weight,
            rating_weight=settings.scoring_rating_weight,
            wheelchair_bonus=settings.scoring_wheelchair_bonus,
        )


DEFAULT_WEIGHTS = ScoringWeights()


def score_distance(km: float) -> float:
    """Piecewise-linear, non-increasing, continuous at 5 / 10 / 20 km."""
    if km <= 5:
        return 100.0
    if km <= 10:
        return 75.0 + (10 - km) * 5
    if km <= 20:
        return 50.0 + (20 - km) * 2.5
    return max(0.0, 50.0 - (km - 20) * 2)


def score_rating(rating: Optional[float]) -> float:
    if rating is None:
        return NEUTRAL_RATING_SCORE
    return rating * 20


def is_eligible(
    driver: Driver,
    booking: Booking,
    now: Optional[datetime] = None,
    max_location_age: Optional[timedelta] = None,
) -> bool:
    """Online, located, and accessible when the booking needs it.

    With ``max_location_age`` set, a driver whose last location fix is older
    than the window (or undated) is treated as having no location.
    """
    if not driver.online or driver.location is None:
        return False
    if booking.requires_wheelchair and not driver.wheelchair_capable:
        return False
    if max_location_age is not None:
        if driver.location_updated_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        if now - driver.location_updated_at > max_location_age:
            return False
    return True


def require_pickup(booking: Booking) -> None:
    if booking.pickup is None:
        raise BookingValidationError(
            f"Booking {booking.id} must have pickup coordinates"
        )


def score_driver(
    driver: Driver,
    booking: Booking,
    weights: ScoringWeights = DEFAULT_WEIGHTS,
) -> AssignmentCandidate:
    """Score an *eligible* driver.  Callers filter with ``is_eligible`` first."""
    require_pickup(booking)
    km = distance_km(booking.pickup, driver.location)
    d_score = score_distance(km)
    r_score = score_rating(driver.rating)
    wheelchair_match = booking.requires_wheelchair and driver.wheelchair_capable
    bonus = weights.wheelchair_bonus if wheelchair_match else 0.0
    total = weights.distance_weight * d_score + weights.rating_weight * r_score + bonus
    return AssignmentCandidate(
        driver_id=driver.id,
        distance_km=km,
        distance_score=d_score,
        rating_score=r_score,
        wheelchair_bonus=bonus,
        total_score=total,
        driver_rating=driver.rating,
        wheelchair_match=wheelchair_match,
    )
