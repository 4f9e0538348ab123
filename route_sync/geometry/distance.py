"""Great-circle distance helpers on a spherical Earth."""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np
from numpy.typing import NDArray

from ..config import EARTH_RADIUS_M
from ..models import Polyline, RoutePoint

MetricArray = NDArray[np.float64]


def haversine_distance(a: RoutePoint, b: RoutePoint) -> float:
    """Return the great-circle distance in metres between two points.

    NaN coordinates are not validated; they propagate to a NaN result.
    """

    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlat = lat2 - lat1
    dlng = math.radians(b.lng - a.lng)
    h = (
        math.sin(dlat / 2.0) ** 2
        + math.cos(lat1) * math.cos(lat2) * math.sin(dlng / 2.0) ** 2
    )
    # Rounding can push h a hair past 1; NaN fails the comparison and stays NaN.
    if h > 1.0:
        h = 1.0
    return 2.0 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))


def initial_bearing(a: RoutePoint, b: RoutePoint) -> float:
    """Initial great-circle bearing from ``a`` towards ``b`` in radians."""

    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    dlng = math.radians(b.lng - a.lng)
    y = math.sin(dlng) * math.cos(lat2)
    x = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(
        dlng
    )
    return math.atan2(y, x)


def polyline_length(points: Polyline) -> float:
    """Cumulative haversine distance along consecutive point pairs."""

    total = 0.0
    for prev, curr in zip(points, points[1:]):
        total += haversine_distance(prev, curr)
    return total


def as_radian_array(points: Iterable[RoutePoint]) -> MetricArray:
    """Return an ``(n, 2)`` array of (lat, lng) in radians."""

    array = np.asarray([(p.lat, p.lng) for p in points], dtype=float)
    if array.size == 0:
        return np.empty((0, 2), dtype=float)
    return np.radians(array)


def haversine_matrix(a: MetricArray, b: MetricArray) -> MetricArray:
    """Pairwise distances (metres) between two radian arrays, shape ``(len(a), len(b))``."""

    lat1 = a[:, 0][:, np.newaxis]
    lng1 = a[:, 1][:, np.newaxis]
    lat2 = b[:, 0][np.newaxis, :]
    lng2 = b[:, 1][np.newaxis, :]
    h = (
        np.sin((lat2 - lat1) / 2.0) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin((lng2 - lng1) / 2.0) ** 2
    )
    h = np.where(h > 1.0, 1.0, h)
    return 2.0 * EARTH_RADIUS_M * np.arctan2(np.sqrt(h), np.sqrt(1.0 - h))
