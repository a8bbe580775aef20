"""Unit tests for the haversine distance and ETA estimate."""

import pytest

from zeger_dispatch.domain.distance import eta_minutes, haversine_km


class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_km(-6.2, 106.8, -6.2, 106.8) == 0.0

    def test_symmetric(self):
        pairs = [
            ((-6.2000, 106.8000), (-6.2050, 106.8050)),
            ((-6.2088, 106.8456), (-6.3011, 106.8165)),
            ((51.5074, -0.1278), (-33.8688, 151.2093)),
            ((0.0, 179.9), (0.0, -179.9)),
        ]
        for (lat1, lng1), (lat2, lng2) in pairs:
            assert haversine_km(lat1, lng1, lat2, lng2) == haversine_km(
                lat2, lng2, lat1, lng1
            )

    def test_known_distance(self):
        # Monas -> Blok M, roughly 8.5 km
        d = haversine_km(-6.1754, 106.8272, -6.2443, 106.8006)
        assert 7.5 < d < 9.0

    def test_rounded_to_two_decimals(self):
        d = haversine_km(-6.2000, 106.8000, -6.2050, 106.8050)
        assert d == round(d, 2)
        assert d == pytest.approx(0.78, abs=0.01)

    def test_antimeridian_is_short(self):
        assert haversine_km(0.0, 179.9, 0.0, -179.9) < 25


class TestEta:
    def test_zero_distance_is_zero_minutes(self):
        assert eta_minutes(0.0) == 0

    def test_twenty_kmh(self):
        assert eta_minutes(10.0) == 30
        assert eta_minutes(0.78) == 2

    def test_rounds_to_nearest_minute(self):
        # 0.125 km at 20 km/h is 0.375 min; 0.25 km is 0.75 min
        assert eta_minutes(0.125) == 0
        assert eta_minutes(0.25) == 1

    def test_custom_speed(self):
        assert eta_minutes(10.0, speed_kmh=40.0) == 15
