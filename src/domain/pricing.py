"""
Fare Calculation
================

Formula
-------
Fare = Initial_Fare + round(Distance_km x Fare_Per_KM)

The gateway accepts integer amounts only, so the result is always an int.

Complexity: O(1) per fare calculation.
"""

from __future__ import annotations

from .distance import haversine_km
from .entities import Location


class FareCalculator:
    """High-level API used by the settlement service."""

    def __init__(self, initial_fare: int = 500, fare_per_km: int = 100):
        self.initial_fare = initial_fare
        self.fare_per_km = fare_per_km

    def calculate_fare(self, pickup: Location, destination: Location) -> int:
        distance = haversine_km(
            pickup.latitude,
            pickup.longitude,
            destination.latitude,
            destination.longitude,
        )
        return self.initial_fare + round(distance * self.fare_per_km)
