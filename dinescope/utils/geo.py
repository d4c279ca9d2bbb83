"""Great-circle distance helpers."""

from __future__ import annotations

import math

EARTH_RADIUS_MILES = 3958.8


def haversine_distance_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in miles between two (lat, lng) points."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c
