"""Great-circle distance on a spherical earth."""
from __future__ import annotations

import math
from dataclasses import dataclass

from ..core.constants import EARTH_RADIUS_M, MAX_LATITUDE, MAX_LONGITUDE, MIN_LATITUDE, MIN_LONGITUDE
from ..core.exceptions import InvalidCoordinate


@dataclass(frozen=True)
class Coordinate:
    """A point in decimal degrees."""

    latitude: float
    longitude: float


def validate_coordinate(point: Coordinate) -> Coordinate:
    lat = float(point.latitude)
    lon = float(point.longitude)
    # NaN fails both comparisons and is rejected here as well.
    if not (MIN_LATITUDE <= lat <= MAX_LATITUDE) or not (MIN_LONGITUDE <= lon <= MAX_LONGITUDE):
        raise InvalidCoordinate(point.latitude, point.longitude)
    return point


def haversine_distance_m(a: Coordinate, b: Coordinate) -> float:
    """Distance between two coordinates in meters (haversine formula).

    Raises InvalidCoordinate when either point is out of range.
    """
    validate_coordinate(a)
    validate_coordinate(b)

    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    delta_lat = math.radians(b.latitude - a.latitude)
    delta_lon = math.radians(b.longitude - a.longitude)

    h = math.sin(delta_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lon / 2) ** 2
    # Clamp rounding drift so antipodal points do not produce a math domain error.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(h))
