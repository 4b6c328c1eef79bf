# bloodnet/geo.py
import math
from typing import NamedTuple, Optional

EARTH_RADIUS_MILES = 3959


class Coordinates(NamedTuple):
    latitude: float
    longitude: float


def check_coordinates(point: Coordinates) -> None:
    lat, lng = point
    if not -90 <= lat <= 90:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180 <= lng <= 180:
        raise ValueError(f"Longitude out of range: {lng}")


def distance(point_a: Coordinates, point_b: Coordinates) -> float:
    """
    Great-circle distance in miles between two (latitude, longitude) pairs
    given in decimal degrees (haversine formula).
    """
    check_coordinates(point_a)
    check_coordinates(point_b)
    lat1, lng1, lat2, lng2 = map(math.radians, [*point_a, *point_b])
    dlat = lat2 - lat1
    dlng = lng2 - lng1
    a = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


def coordinates_of(obj) -> Optional[Coordinates]:
    """Coordinates of a bank or facility, or None when either part is missing."""
    lat = getattr(obj, "latitude", None)
    lng = getattr(obj, "longitude", None)
    if lat is None or lng is None:
        return None
    return Coordinates(float(lat), float(lng))


def distance_between(point_a: Optional[Coordinates], point_b: Optional[Coordinates]) -> Optional[float]:
    # unknown stays unknown; never substitute a default location
    if point_a is None or point_b is None:
        return None
    return distance(point_a, point_b)
