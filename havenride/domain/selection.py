"""
Assignment Selection
====================

Ranks a driver pool for one booking:

1. Filter to eligible drivers (``scoring.is_eligible``).
2. Score each one (``scoring.score_driver``).
3. Order by total score desc, then distance asc, then driver id, so that
   equal scores always resolve the same way.

Complexity: O(D log D) for D drivers in the pool.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, Optional

from .entities import AssignmentCandidate, Booking, Driver
from .scoring import DEFAULT_WEIGHTS, ScoringWeights, is_eligible, require_pickup, score_driver


def _rank_key(candidate: AssignmentCandidate):
    return (-candidate.total_score, candidate.distance_km, candidate.driver_id)


class AssignmentSelector:
    def __init__(
        self,
        weights: ScoringWeights = DEFAULT_WEIGHTS,
        max_location_age: Optional[timedelta] = None,
    ):
        self.weights = weights
        self.max_location_age = max_location_age

    def rank(
        self,
        drivers: Iterable[Driver],
        booking: Booking,
        now: Optional[datetime] = None,
    ) -> list[AssignmentCandidate]:
        require_pickup(booking)
        candidates = [
            score_driver(d, booking, self.weights)
            for d in drivers
            if is_eligible(d, booking, now=now, max_location_age=self.max_location_age)
        ]
        candidates.sort(key=_rank_key)
        return candidates

    def select_best(
        self,
        drivers: Iterable[Driver],
        booking: Booking,
        now: Optional[datetime] = None,
    ) -> Optional[AssignmentCandidate]:
        """Best candidate, or ``None`` when nobody is eligible."""
        ranked = self.rank(drivers, booking, now=now)
        return ranked[0] if ranked else None

    def select_top_n(
        self,
        drivers: Iterable[Driver],
        booking: Booking,
        n: int,
        now: Optional[datetime] = None,
    ) -> list[AssignmentCandidate]:
        """Up to ``n`` candidates for a dispatcher to choose from."""
        if n <= 0:
            return []
        return self.rank(drivers, booking, now=now)[:n]

    @staticmethod
    def explain(candidate: AssignmentCandidate) -> str:
        reasons: list[str] = []

        if candidate.distance_km < 2:
            reasons.append("Very close to pickup location")
        elif candidate.distance_km < 5:
            reasons.append("Close to pickup location")
        elif candidate.distance_km < 10:
            reasons.append("Reasonable distance to pickup")

        rating = candidate.driver_rating
        if rating is not None and rating >= 4.5:
            reasons.append("Excellent rating")
        elif rating is not None and rating >= 4.0:
            reasons.append("Good rating")

        if candidate.wheelchair_match:
            reasons.append("Wheelchair accessible vehicle")

        if not reasons:
            return "Best available driver"
        return " • ".join(reasons)
