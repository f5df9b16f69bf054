from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

EARTH_RADIUS_MILES = 3959.0

# Coarse pre-filter only: the same factor is used for longitude, so the box
# over-fetches away from the equator. The haversine pass is authoritative.
MILES_PER_DEGREE = 69.0


@dataclass(frozen=True)
class Coords:
    lat: float
    lng: float


@dataclass(frozen=True)
class BoundingBox:
    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float

    def contains(self, lat: float, lng: float) -> bool:
        return self.lat_min <= lat <= self.lat_max and self.lng_min <= lng <= self.lng_max


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """
    Great-circle distance in miles between two points given in degrees.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lng2 - lng1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # Float noise can push a a hair outside [0, 1] for antipodal/identical points
    a = min(1.0, max(0.0, a))
    return 2 * EARTH_RADIUS_MILES * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bounding_box(center: Coords, radius_miles: float) -> BoundingBox:
    delta = radius_miles / MILES_PER_DEGREE
    return BoundingBox(
        lat_min=center.lat - delta,
        lat_max=center.lat + delta,
        lng_min=center.lng - delta,
        lng_max=center.lng + delta,
    )


def normalize(v: Any) -> float:
    """
    Coerce a noisy demographic value into a finite non-negative float.

    None, blanks, unparseable strings, NaN/inf and negatives all become 0.
    """
    if v is None or isinstance(v, bool):
        return 0.0
    if isinstance(v, str):
        s = v.strip().replace(",", "")
        if not s:
            return 0.0
        try:
            f = float(s)
        except ValueError:
            return 0.0
    else:
        try:
            f = float(v)
        except (TypeError, ValueError):
            return 0.0

    if not math.isfinite(f) or f < 0:
        return 0.0
    return f
