"""Build compact route signatures from raw GPS traces."""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..config import (
    EARTH_RADIUS_M,
    LOOP_THRESHOLD_M,
    REGION_GRID_SIZE_M,
    SIGNATURE_MAX_POINTS,
    SIGNATURE_SIMPLIFY_TOLERANCE_M,
)
from ..geometry import haversine_distance, polyline_length, simplify_polyline
from ..models import Bounds, RoutePoint, RouteSignature

LOGGER = logging.getLogger(__name__)

_METRES_PER_DEGREE = EARTH_RADIUS_M * math.pi / 180.0


def region_cell(point: RoutePoint, grid_size_m: float = REGION_GRID_SIZE_M) -> Tuple[int, int]:
    """Return the (lat, lng) index of the fixed grid cell containing ``point``."""

    cell_deg = grid_size_m / _METRES_PER_DEGREE
    return math.floor(point.lat / cell_deg), math.floor(point.lng / cell_deg)


def region_hash(point: RoutePoint, grid_size_m: float = REGION_GRID_SIZE_M) -> str:
    lat_idx, lng_idx = region_cell(point, grid_size_m)
    return f"{lat_idx}_{lng_idx}"


def parse_region_hash(value: str) -> Tuple[int, int]:
    lat_part, lng_part = value.split("_", 1)
    return int(lat_part), int(lng_part)


def elevation_gain(elevations: Sequence[float]) -> float:
    """Sum of positive elevation deltas, ignoring non-finite samples."""

    finite = [e for e in elevations if e is not None and math.isfinite(e)]
    gain = 0.0
    for prev, curr in zip(finite, finite[1:]):
        if curr > prev:
            gain += curr - prev
    return gain


class RouteSignatureBuilder:
    """Turns a raw trace into a :class:`RouteSignature`."""

    def __init__(
        self,
        *,
        simplify_tolerance_m: float = SIGNATURE_SIMPLIFY_TOLERANCE_M,
        max_points: int = SIGNATURE_MAX_POINTS,
        grid_size_m: float = REGION_GRID_SIZE_M,
        loop_threshold_m: float = LOOP_THRESHOLD_M,
    ) -> None:
        if max_points < 2:
            raise ValueError("max_points must be >= 2")
        self.simplify_tolerance_m = simplify_tolerance_m
        self.max_points = max_points
        self.grid_size_m = grid_size_m
        self.loop_threshold_m = loop_threshold_m

    def build(
        self,
        activity_id: str,
        points: Sequence[RoutePoint],
        elevations: Optional[Sequence[float]] = None,
    ) -> Optional[RouteSignature]:
        """Return the signature, or ``None`` with fewer than two finite points."""

        finite = [p for p in points if p.is_finite()]
        if len(finite) < 2:
            LOGGER.debug(
                "Skipping signature for activity=%s: %d finite points",
                activity_id,
                len(finite),
            )
            return None

        bounds = Bounds.from_points(finite)
        if bounds is None:  # pragma: no cover - guarded by the length check
            return None
        simplified = _decimate(
            list(simplify_polyline(finite, self.simplify_tolerance_m)),
            self.max_points,
        )
        start, end = finite[0], finite[-1]
        gain = elevation_gain(elevations) if elevations else None
        return RouteSignature(
            activity_id=activity_id,
            points=tuple(simplified),
            distance=polyline_length(finite),
            bounds=bounds,
            center=bounds.center(),
            start_region_hash=region_hash(start, self.grid_size_m),
            end_region_hash=region_hash(end, self.grid_size_m),
            is_loop=haversine_distance(start, end) < self.loop_threshold_m,
            elevation_gain=gain,
        )


def _decimate(points: List[RoutePoint], max_points: int) -> List[RoutePoint]:
    """Down-sample while preserving the endpoints."""

    count = len(points)
    if count <= max_points:
        return points
    indices = np.linspace(0, count - 1, num=max_points, dtype=int)
    return [points[int(i)] for i in indices]


DEFAULT_BUILDER = RouteSignatureBuilder()


def build_signature(
    activity_id: str,
    points: Sequence[RoutePoint],
    elevations: Optional[Sequence[float]] = None,
) -> Optional[RouteSignature]:
    """Build a signature with the default configuration."""

    return DEFAULT_BUILDER.build(activity_id, points, elevations)
