from __future__ import annotations

import math

from src.domain.models import Coordinate

EARTH_RADIUS_KM = 6371.0


def haversine_distance_km(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in kilometers."""

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude - a.longitude)

    s = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2.0) ** 2
    )
    # Rounding can push s just outside [0, 1] near antipodes.
    s = min(1.0, max(0.0, s))
    c = 2.0 * math.atan2(math.sqrt(s), math.sqrt(1.0 - s))
    return EARTH_RADIUS_KM * c
