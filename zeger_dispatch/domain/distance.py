"""
Distance and ETA estimates using the Haversine formula.

Assumption
----------
Riders travel on two-wheelers through city traffic, so ETA is derived from
the great-circle distance at a flat average speed (20 km/h) rather than a
routing engine.  Both values are display estimates, not routing promises.

Complexity: O(1) per call.
"""

import math

EARTH_RADIUS_KM = 6_371.0
ASSUMED_SPEED_KMH = 20.0


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def haversine_km(
    lat1: float, lng1: float, lat2: float, lng2: float
) -> float:
    """Return the great-circle distance in **km**, rounded to 2 decimals."""
    lat1_r, lat2_r = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)

    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(lat1_r) * math.cos(lat2_r) * math.sin(dlng / 2) ** 2
    )
    return _round_half_up(2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a)), 2)


def eta_minutes(distance_km: float, speed_kmh: float = ASSUMED_SPEED_KMH) -> int:
    """Minutes needed to cover *distance_km* at *speed_kmh*, nearest integer."""
    return int(_round_half_up(distance_km / speed_kmh * 60))
