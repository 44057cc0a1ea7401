"""Great-circle distance and the bounding-box prefilter.

The prefilter is a cheap superset test: it may admit points in the corners of
the box that lie outside the circle, but it never rejects a point whose
haversine distance is within the radius. Callers always re-check survivors
with :func:`distance_meters`.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Protocol, TypeVar

EARTH_RADIUS_M = 6_371_000.0
# Rounded meters per degree of latitude used for the box. The haversine value
# (2*pi*R/360 ~ 111,195 m) is larger, so this alone already over-covers.
METERS_PER_DEGREE_LAT = 111_000.0

# Relative slack on the exact bounds so float noise at the rim cannot drop a
# point sitting exactly on the radius.
_RIM_SLACK = 1e-9


def distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance in meters between two ``(lat, lon)`` pairs in degrees."""

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    # Clamp: rounding can push ``a`` a hair past 1 for antipodal points
    a = min(1.0, a)
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class HasCoordinates(Protocol):
    latitude: float
    longitude: float


T = TypeVar("T", bound=HasCoordinates)


@dataclass(frozen=True, slots=True)
class BoundingBox:
    """Axis-aligned lat/lon window around a center longitude.

    ``lon_delta`` of ``None`` means every longitude is admitted (the circle
    touches a pole or is wide enough to wrap the globe). Longitude comparisons
    wrap across the antimeridian.
    """

    min_lat: float
    max_lat: float
    center_lon: float
    lon_delta: float | None

    def contains(self, lat: float, lon: float) -> bool:
        if lat < self.min_lat or lat > self.max_lat:
            return False
        if self.lon_delta is None:
            return True
        return abs(wrap_longitude(lon - self.center_lon)) <= self.lon_delta


def wrap_longitude(lon: float) -> float:
    """Normalize a longitude (or a difference of two) into ``[-180, 180)``."""

    if -180.0 <= lon < 180.0:
        return lon
    return (lon + 180.0) % 360.0 - 180.0


def bounding_box(lat: float, lon: float, radius_m: float) -> BoundingBox:
    """Return the prefilter box for a circle of ``radius_m`` around ``(lat, lon)``.

    Base deltas follow the usual flat approximation::

        lat_delta = r / 111_000
        lon_delta = r / (111_000 * cos(lat))

    Each is widened to the exact spherical bound when that is larger, which
    only matters for large radii or latitudes near the poles. When
    ``cos(lat)`` vanishes or the circle reaches a pole, all longitudes match.
    """

    angular = radius_m / EARTH_RADIUS_M  # radians of arc
    lat_delta = max(radius_m / METERS_PER_DEGREE_LAT, math.degrees(angular)) * (1 + _RIM_SLACK)
    min_lat = max(-90.0, lat - lat_delta)
    max_lat = min(90.0, lat + lat_delta)

    cos_lat = math.cos(math.radians(lat))
    # Circle covers a pole (or the whole sphere): every meridian passes through it
    if angular >= math.pi / 2 - math.radians(abs(lat)) or cos_lat <= 0:
        return BoundingBox(min_lat, max_lat, lon, None)

    approx = radius_m / (METERS_PER_DEGREE_LAT * cos_lat)
    exact = math.degrees(math.asin(min(1.0, math.sin(angular) / cos_lat)))
    lon_delta = max(approx, exact) * (1 + _RIM_SLACK)
    if not math.isfinite(lon_delta) or lon_delta >= 180.0:
        return BoundingBox(min_lat, max_lat, lon, None)
    return BoundingBox(min_lat, max_lat, lon, lon_delta)


def prefilter(candidates: Iterable[T], lat: float, lon: float, radius_m: float) -> Iterator[T]:
    """Yield the candidates whose coordinates fall inside the radius's box."""

    box = bounding_box(lat, lon, radius_m)
    for c in candidates:
        if box.contains(c.latitude, c.longitude):
            yield c


__all__ = [
    "EARTH_RADIUS_M",
    "METERS_PER_DEGREE_LAT",
    "BoundingBox",
    "bounding_box",
    "distance_meters",
    "prefilter",
    "wrap_longitude",
]
