"""
Distance helpers: Haversine great-circle distance and bounding boxes.

The bounding box is only a cheap pre-filter for the store query.  Final
ranking of candidates always uses the exact Haversine distance.

Complexity: O(1) per call.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

EARTH_RADIUS_KM = 6_371.0

# Length of one degree of latitude on the reference sphere.
KM_PER_DEGREE = EARTH_RADIUS_KM * math.pi / 180

# Below this cosine the longitude span is clamped to the whole globe.
_MIN_COS_LAT = 1e-6


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
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


@dataclass(frozen=True)
class BoundingBox:
    """Box in unwrapped degrees; the longitude edges may lie past ±180."""

    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    def lng_ranges(self) -> list[tuple[float, float]]:
        """Longitude span as one or two ranges inside ``[-180, 180]``.

        A box that crosses the antimeridian is split in two.
        """
        if self.max_lng - self.min_lng >= 360.0:
            return [(-180.0, 180.0)]
        if self.min_lng < -180.0:
            return [(self.min_lng + 360.0, 180.0), (-180.0, self.max_lng)]
        if self.max_lng > 180.0:
            return [(self.min_lng, 180.0), (-180.0, self.max_lng - 360.0)]
        return [(self.min_lng, self.max_lng)]

    def contains(self, lat: float, lng: float) -> bool:
        if not self.min_lat <= lat <= self.max_lat:
            return False
        return any(lo <= lng <= hi for lo, hi in self.lng_ranges())


def bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
    """Square box of half-width *radius_km* around ``(lat, lng)``.

    The half-width is converted to degrees separately for latitude and
    longitude, so the box covers every point within *radius_km* of the
    centre.  Use ``lng_ranges()`` to query it across the antimeridian.
    """
    dlat = radius_km / KM_PER_DEGREE
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < _MIN_COS_LAT:
        dlng = 180.0
    else:
        dlng = min(180.0, radius_km / (KM_PER_DEGREE * cos_lat))

    return BoundingBox(
        min_lat=max(-90.0, lat - dlat),
        max_lat=min(90.0, lat + dlat),
        min_lng=lng - dlng,
        max_lng=lng + dlng,
    )
