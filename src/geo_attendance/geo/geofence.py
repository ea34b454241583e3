from __future__ import annotations

from dataclasses import dataclass

from ..core.exceptions import InvalidFence
from .distance import Coordinate, haversine_distance_m, validate_coordinate


@dataclass(frozen=True)
class Geofence:
    """Circular fence: center point + radius in meters."""

    center: Coordinate
    radius_m: float

    def __post_init__(self) -> None:
        validate_coordinate(self.center)
        if not (self.radius_m > 0):
            raise InvalidFence(f"Geofence radius must be positive, got {self.radius_m!r}")


@dataclass(frozen=True)
class FenceCheck:
    inside: bool
    distance_m: float
    radius_m: float


def check_point(point: Coordinate, fence: Geofence) -> FenceCheck:
    """Measure `point` against `fence`. The boundary counts as inside."""
    distance = haversine_distance_m(point, fence.center)
    return FenceCheck(inside=distance <= fence.radius_m, distance_m=distance, radius_m=fence.radius_m)


def is_inside(point: Coordinate, fence: Geofence) -> bool:
    return check_point(point, fence).inside
