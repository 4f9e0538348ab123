"""Douglas-Peucker simplification measured on the sphere."""

from __future__ import annotations

import math
from typing import List, Sequence, TypeVar

from ..config import EARTH_RADIUS_M
from ..models import RoutePoint
from .distance import haversine_distance, initial_bearing

P = TypeVar("P", bound=RoutePoint)


def _clamp_unit(value: float) -> float:
    return max(-1.0, min(1.0, value))


def segment_distance(point: RoutePoint, start: RoutePoint, end: RoutePoint) -> float:
    """Distance in metres from ``point`` to the great-circle arc ``start``-``end``.

    Uses cross-track distance when the point projects inside the arc and the
    distance to the nearer endpoint otherwise.
    """

    chord = haversine_distance(start, end)
    if chord == 0.0:
        return haversine_distance(start, point)
    to_point = haversine_distance(start, point)
    if to_point == 0.0:
        return 0.0
    delta = initial_bearing(start, point) - initial_bearing(start, end)
    if math.cos(delta) < 0.0:
        # Behind the start of the arc.
        return to_point
    angular = to_point / EARTH_RADIUS_M
    cross = math.asin(_clamp_unit(math.sin(angular) * math.sin(delta)))
    along = (
        math.acos(_clamp_unit(math.cos(angular) / max(math.cos(cross), 1e-15)))
        * EARTH_RADIUS_M
    )
    if along > chord:
        return haversine_distance(end, point)
    return abs(cross) * EARTH_RADIUS_M


def simplify_polyline(points: Sequence[P], tolerance: float) -> Sequence[P]:
    """Simplify ``points`` keeping every vertex deviating more than ``tolerance`` metres.

    Inputs with two or fewer points are returned as-is. The first and last
    points always survive. Uses an explicit stack so long traces cannot hit
    the recursion limit.
    """

    count = len(points)
    if count <= 2:
        return points

    keep = [False] * count
    keep[0] = keep[-1] = True
    stack = [(0, count - 1)]
    while stack:
        first, last = stack.pop()
        if last - first < 2:
            continue
        max_dist = 0.0
        max_index = first
        start = points[first]
        end = points[last]
        for idx in range(first + 1, last):
            dist = segment_distance(points[idx], start, end)
            if dist > max_dist:
                max_dist = dist
                max_index = idx
        if max_dist > tolerance:
            keep[max_index] = True
            stack.append((first, max_index))
            stack.append((max_index, last))

    simplified: List[P] = [pt for pt, kept in zip(points, keep) if kept]
    return simplified
