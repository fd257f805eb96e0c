"""
Distance calculation using the Haversine formula.

Assumption
----------
Great-circle (Haversine) distance between the driver's last reported
position and the pickup point is used for ranking.  Road distance and
ETA are the routing service's business, not the dispatch core's.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .entities import Location

EARTH_RADIUS_KM = 6_371.0


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km** between two points."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    # Rounding can push ``a`` a hair above 1 for antipodal points
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(min(1.0, a)))


def distance_km(a: Location, b: Location) -> float:
    """Haversine distance between two ``Location`` value objects."""
    return haversine_km(a.latitude, a.longitude, b.latitude, b.longitude)
