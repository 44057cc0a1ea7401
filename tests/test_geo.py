from __future__ import annotations

import math
import random
from dataclasses import dataclass

import pytest
from spend_tracker.geo import (
    EARTH_RADIUS_M,
    bounding_box,
    distance_meters,
    prefilter,
)


@dataclass
class _Point:
    latitude: float
    longitude: float


def _destination(lat: float, lon: float, bearing_deg: float, dist_m: float) -> tuple[float, float]:
    """Point reached from ``(lat, lon)`` after ``dist_m`` along ``bearing_deg``."""

    phi1 = math.radians(lat)
    lmb1 = math.radians(lon)
    theta = math.radians(bearing_deg)
    delta = dist_m / EARTH_RADIUS_M
    phi2 = math.asin(
        math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    )
    lmb2 = lmb1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * math.sin(phi2),
    )
    lon2 = (math.degrees(lmb2) + 540.0) % 360.0 - 180.0
    return math.degrees(phi2), lon2


# ---- distance ----------------------------------------------------------------


def test_distance_to_self_is_zero():
    assert distance_meters(22.28, 114.15, 22.28, 114.15) == 0.0


def test_distance_is_symmetric():
    rng = random.Random(7)
    for _ in range(200):
        a = (rng.uniform(-90, 90), rng.uniform(-180, 180))
        b = (rng.uniform(-90, 90), rng.uniform(-180, 180))
        assert distance_meters(*a, *b) == pytest.approx(distance_meters(*b, *a), rel=1e-12)


def test_distance_matches_known_values():
    # One degree of latitude on a 6,371 km sphere
    assert distance_meters(0, 0, 1, 0) == pytest.approx(111_194.93, abs=0.01)
    # The sample repeat visit: ~15 m apart in Hong Kong
    assert distance_meters(22.28, 114.15, 22.2801, 114.1501) == pytest.approx(15.2, abs=0.2)
    # Antipodes are half the circumference apart
    assert distance_meters(0, 0, 0, 180) == pytest.approx(math.pi * EARTH_RADIUS_M)


def test_distance_is_nan_for_non_finite_input():
    assert math.isnan(distance_meters(float("nan"), 0, 0, 0))


# ---- bounding box --------------------------------------------------------------


def test_box_uses_flat_deltas_at_mid_latitudes():
    box = bounding_box(22.28, 114.15, 100)
    assert box.max_lat - 22.28 == pytest.approx(100 / 111_000, rel=1e-6)
    assert box.lon_delta == pytest.approx(100 / (111_000 * math.cos(math.radians(22.28))), rel=1e-6)


def test_box_spans_all_longitudes_at_the_pole():
    box = bounding_box(90.0, 0.0, 100)
    assert box.lon_delta is None
    assert box.contains(89.9995, 137.0)


def test_box_wraps_across_the_antimeridian():
    box = bounding_box(0.0, 179.9995, 200)
    assert box.contains(0.0, -179.9995)
    assert not box.contains(0.0, 0.0)


def test_box_rejects_points_far_outside():
    box = bounding_box(22.28, 114.15, 100)
    assert not box.contains(22.29, 114.15)
    assert not box.contains(22.28, 114.16)


@pytest.mark.parametrize(
    "radius_m",
    [1.0, 50.0, 100.0, 200.0, 5_000.0, 250_000.0, 2_000_000.0],
)
def test_prefilter_never_drops_a_point_inside_the_radius(radius_m: float):
    rng = random.Random(int(radius_m))
    for _ in range(400):
        # Bias some centers toward the poles and the antimeridian
        lat = rng.choice([rng.uniform(-90, 90), rng.uniform(85, 90), rng.uniform(-90, -85)])
        lon = rng.choice([rng.uniform(-180, 180), rng.uniform(179, 180)])
        dist = radius_m * rng.uniform(0.0, 1.0)
        plat, plon = _destination(lat, lon, rng.uniform(0, 360), dist)
        if distance_meters(lat, lon, plat, plon) > radius_m:
            continue  # numerical drift past the rim; not a true positive
        assert list(prefilter([_Point(plat, plon)], lat, lon, radius_m)), (lat, lon, plat, plon)


def test_prefilter_points_exactly_on_the_rim_survive():
    for bearing in (0, 45, 90, 135, 180, 225, 270, 315):
        plat, plon = _destination(22.28, 114.15, bearing, 100)
        assert list(prefilter([_Point(plat, plon)], 22.28, 114.15, 100.0))
