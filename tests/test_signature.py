"""Tests for route signature construction."""

from __future__ import annotations

import math

import pytest

from route_sync.geometry import haversine_distance, polyline_length
from route_sync.matching import RouteSignatureBuilder, build_signature, elevation_gain, region_hash
from route_sync.matching.signature import parse_region_hash, region_cell
from route_sync.models import RoutePoint

from conftest import make_line, make_loop


def test_signature_of_straight_line():
    line = make_line(52.0, 4.0, 300, step_deg=0.0001)
    sig = build_signature("a1", line)

    assert sig is not None
    assert sig.activity_id == "a1"
    assert sig.distance == pytest.approx(polyline_length(line))
    assert sig.bounds.min_lat == sig.bounds.max_lat == 52.0
    assert sig.bounds.min_lng == pytest.approx(4.0)
    assert sig.bounds.max_lng == pytest.approx(4.0299)
    assert sig.center.lng == pytest.approx((4.0 + 4.0299) / 2.0)
    assert 2 <= len(sig.points) <= 100
    assert sig.points[0] == line[0]
    assert sig.points[-1] == line[-1]
    assert sig.is_loop is False
    assert sig.start_region_hash != sig.end_region_hash
    assert sig.elevation_gain is None


def test_center_is_bounds_midpoint_not_centroid():
    # Most points cluster at the start; the centroid would sit near them.
    points = [RoutePoint(10.0, 10.0)] * 20 + [RoutePoint(10.0, 10.01), RoutePoint(10.02, 10.02)]
    sig = build_signature("c", points)
    assert sig.center.lat == pytest.approx(10.01)
    assert sig.center.lng == pytest.approx(10.01)


def test_loop_detection():
    loop = make_loop(40.0, -3.0)
    sig = build_signature("loop", loop)
    assert sig.is_loop is True
    assert sig.start_region_hash == sig.end_region_hash


def test_loop_threshold_is_configurable():
    line = make_line(0.0, 0.0, 3, step_deg=0.0005)  # ends ~111 m apart
    assert build_signature("x", line).is_loop is False
    loose = RouteSignatureBuilder(loop_threshold_m=200.0)
    assert loose.build("x", line).is_loop is True


def test_signature_requires_two_finite_points():
    nan = float("nan")
    assert build_signature("none", []) is None
    assert build_signature("one", [RoutePoint(1.0, 1.0)]) is None
    assert build_signature("nan", [RoutePoint(1.0, 1.0), RoutePoint(nan, 1.0)]) is None


def test_non_finite_points_are_ignored():
    nan = float("nan")
    points = [RoutePoint(1.0, 1.0), RoutePoint(nan, nan), RoutePoint(1.0, 1.001)]
    sig = build_signature("mixed", points)
    assert sig is not None
    assert sig.distance == pytest.approx(haversine_distance(points[0], points[2]))
    assert all(p.is_finite() for p in sig.points)


def test_max_points_caps_signature_size():
    zigzag = [RoutePoint(0.001 * (i % 2), i * 0.001) for i in range(500)]
    builder = RouteSignatureBuilder(max_points=50)
    sig = builder.build("zig", zigzag)
    assert len(sig.points) == 50
    assert sig.points[0] == zigzag[0]
    assert sig.points[-1] == zigzag[-1]


def test_max_points_must_allow_endpoints():
    with pytest.raises(ValueError):
        RouteSignatureBuilder(max_points=1)


def test_region_hash_grid():
    p = RoutePoint(51.5, -0.12)
    nearby = RoutePoint(51.5 + 1e-6, -0.12 + 1e-6)
    assert region_hash(p) == region_hash(nearby)
    lat_idx, lng_idx = parse_region_hash(region_hash(p))
    assert (lat_idx, lng_idx) == region_cell(p)
    assert lng_idx < 0
    far = RoutePoint(51.51, -0.12)  # ~1.1 km north
    assert parse_region_hash(region_hash(far))[0] > lat_idx


def test_elevation_gain_sums_climbs():
    assert elevation_gain([10.0, 15.0, 12.0, 20.0, float("nan"), 25.0]) == pytest.approx(18.0)
    line = make_line(0.0, 0.0, 4)
    sig = build_signature("e", line, elevations=[0.0, 5.0, 3.0, 4.0])
    assert sig.elevation_gain == pytest.approx(6.0)
    assert not math.isnan(sig.elevation_gain)
