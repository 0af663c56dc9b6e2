"""Unit tests for fare calculation."""

from src.domain.distance import haversine_km
from src.domain.entities import Location
from src.domain.pricing import FareCalculator


class TestFareCalculator:
    def setup_method(self):
        self.calculator = FareCalculator(initial_fare=500, fare_per_km=100)

    def test_zero_distance_is_initial_fare(self):
        here = Location(35.681, 139.767)
        assert self.calculator.calculate_fare(here, here) == 500

    def test_fare_grows_with_distance(self):
        pickup = Location(35.681, 139.767)
        destination = Location(35.690, 139.700)
        expected = 500 + round(haversine_km(35.681, 139.767, 35.690, 139.700) * 100)

        fare = self.calculator.calculate_fare(pickup, destination)

        assert fare == expected
        assert isinstance(fare, int)

    def test_custom_rates(self):
        calculator = FareCalculator(initial_fare=0, fare_per_km=10)
        fare = calculator.calculate_fare(Location(0.0, 0.0), Location(1.0, 0.0))
        assert fare == 1112  # 111.195 km x 10
