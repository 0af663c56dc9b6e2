"""
Expanding-Radius Nearest Chair Search
=====================================

1. **Ring sequence**    -- radii ``step, 2 x step, ...`` up to ``max``.
2. **Pre-filter**       -- for each radius, a square lat/lng bounding box
   around the pickup point selects candidate chairs from the store.
3. **Exact ranking**    -- candidates are ranked by Haversine distance and
   the closest one wins.

The search stops at the *first non-empty ring*.  A chair just outside that
box may be closer than the winner; the search trades global optimality for
fewer store round-trips as the radius grows.

Complexity
----------
Let K = number of rings, m_k = candidates returned for ring k.

* Ranking a ring:  O(m_k)
* Worst-case:      O(sum m_k) + K store queries
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Iterator, Optional

from .distance import BoundingBox, bounding_box, haversine_km

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChairCandidate:
    """An eligible chair at its most recent known position."""

    chair_id: int
    latitude: float
    longitude: float


@dataclass(frozen=True)
class RankedChair:
    chair_id: int
    latitude: float
    longitude: float
    distance_km: float
    radius_km: float


CandidateFinder = Callable[[BoundingBox], Awaitable[list[ChairCandidate]]]
Sleep = Callable[[float], Awaitable[None]]


def search_radii(step_km: float, max_km: float) -> Iterator[float]:
    """Yield ``step, 2 x step, ...`` while not exceeding *max_km*."""
    if step_km <= 0:
        raise ValueError("step_km must be positive")
    rings = math.floor(max_km / step_km + 1e-9)
    for n in range(1, rings + 1):
        yield step_km * n


def nearest_chair(
    pickup_lat: float,
    pickup_lng: float,
    candidates: Iterable[ChairCandidate],
    radius_km: float = 0.0,
) -> Optional[RankedChair]:
    """Return the candidate with the minimal Haversine distance, if any."""
    best: Optional[RankedChair] = None
    for c in candidates:
        d = haversine_km(pickup_lat, pickup_lng, c.latitude, c.longitude)
        if best is None or d < best.distance_km:
            best = RankedChair(
                chair_id=c.chair_id,
                latitude=c.latitude,
                longitude=c.longitude,
                distance_km=d,
                radius_km=radius_km,
            )
    return best


async def expanding_search(
    find_candidates: CandidateFinder,
    pickup_lat: float,
    pickup_lng: float,
    *,
    step_km: float,
    max_km: float,
    sleep: Sleep,
    delay_seconds: float = 0.0,
) -> Optional[RankedChair]:
    """
    Widen the search box ring by ring until a chair is found.

    *find_candidates* is called once per ring with that ring's bounding
    box.  *sleep* is awaited between rings (never after the last one) so
    tests can pass a no-op.  Returns ``None`` when no chair lies within
    *max_km*.
    """
    first = True
    for radius in search_radii(step_km, max_km):
        if not first:
            await sleep(delay_seconds)
        first = False

        box = bounding_box(pickup_lat, pickup_lng, radius)
        candidates = await find_candidates(box)
        best = nearest_chair(pickup_lat, pickup_lng, candidates, radius)
        if best is not None:
            return best

        logger.debug("No chair within %.2f km, expanding search", radius)
    return None
