"""Tests for the great-circle distance helpers."""

from types import SimpleNamespace

import pytest

from bloodnet.geo import EARTH_RADIUS_MILES, Coordinates, coordinates_of, distance, distance_between


def test_same_point_is_zero() -> None:
    point = Coordinates(40.7128, -74.0060)
    assert distance(point, point) == pytest.approx(0.0)


def test_known_city_pair() -> None:
    """New York to Los Angeles is roughly 2445 miles as the crow flies."""
    nyc = Coordinates(40.7128, -74.0060)
    la = Coordinates(34.0522, -118.2437)
    assert distance(nyc, la) == pytest.approx(2445, rel=0.01)


def test_symmetric() -> None:
    a = Coordinates(51.5074, -0.1278)
    b = Coordinates(48.8566, 2.3522)
    assert distance(a, b) == pytest.approx(distance(b, a))


def test_half_circumference_between_antipodes() -> None:
    import math

    assert distance(Coordinates(0, 0), Coordinates(0, 180)) == pytest.approx(math.pi * EARTH_RADIUS_MILES)


def test_out_of_range_latitude_rejected() -> None:
    with pytest.raises(ValueError, match="Latitude"):
        distance(Coordinates(91, 0), Coordinates(0, 0))


def test_coordinates_of_requires_both_parts() -> None:
    assert coordinates_of(SimpleNamespace(latitude=1.0, longitude=None)) is None
    assert coordinates_of(SimpleNamespace(latitude=None, longitude=2.0)) is None
    assert coordinates_of(SimpleNamespace(latitude=1.0, longitude=2.0)) == Coordinates(1.0, 2.0)


def test_zero_coordinates_are_real_coordinates() -> None:
    """0.0 is a valid latitude, not a missing one."""
    assert coordinates_of(SimpleNamespace(latitude=0.0, longitude=0.0)) == Coordinates(0.0, 0.0)


def test_distance_between_propagates_absence() -> None:
    point = Coordinates(10, 10)
    assert distance_between(None, point) is None
    assert distance_between(point, None) is None
    assert distance_between(point, point) == pytest.approx(0.0)
