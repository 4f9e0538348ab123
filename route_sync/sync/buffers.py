"""Pack per-activity traces into one interleaved coordinate buffer."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from ..config import DEFAULT_SPORT_TYPE, MIN_TRACE_POINTS
from ..models import Activity, RoutePoint

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class FlatCoordinateBuffer:
    """Interleaved ``[lat0, lng0, lat1, lng1, ...]`` across activities.

    ``offsets[i]`` is the point-pair index where ``ids[i]`` starts; the last
    activity runs to the end of ``coords``.
    """

    ids: List[str] = field(default_factory=list)
    coords: NDArray[np.float64] = field(
        default_factory=lambda: np.empty(0, dtype=np.float64)
    )
    offsets: List[int] = field(default_factory=list)
    sport_types: List[str] = field(default_factory=list)
    failed_no_trace: int = 0
    failed_too_few_points: int = 0
    skipped_invalid_coords: int = 0

    @property
    def total_points(self) -> int:
        return int(self.coords.shape[0] // 2)

    def point_count(self, index: int) -> int:
        end = self.offsets[index + 1] if index + 1 < len(self.offsets) else self.total_points
        return end - self.offsets[index]

    def points_for(self, index: int) -> List[RoutePoint]:
        start = self.offsets[index]
        end = start + self.point_count(index)
        pairs = self.coords[2 * start : 2 * end].reshape(-1, 2)
        return [RoutePoint(float(lat), float(lng)) for lat, lng in pairs]


def build_flat_buffer(
    activities: Sequence[Activity],
    traces: Mapping[str, Optional[Sequence[RoutePoint]]],
    *,
    min_points: int = MIN_TRACE_POINTS,
    default_sport_type: str = DEFAULT_SPORT_TYPE,
) -> FlatCoordinateBuffer:
    """Keep activities with at least ``min_points`` valid points, in input order."""

    buffer = FlatCoordinateBuffer()
    values: List[float] = []
    for activity in activities:
        trace = traces.get(activity.id)
        if not trace:
            buffer.failed_no_trace += 1
            continue
        valid = [p for p in trace if p.is_valid()]
        buffer.skipped_invalid_coords += len(trace) - len(valid)
        if len(valid) < min_points:
            buffer.failed_too_few_points += 1
            continue
        buffer.ids.append(activity.id)
        buffer.offsets.append(len(values) // 2)
        buffer.sport_types.append(activity.sport_type or default_sport_type)
        for point in valid:
            values.append(point.lat)
            values.append(point.lng)

    if buffer.skipped_invalid_coords:
        LOGGER.warning(
            "Skipped %d invalid coordinates (out of bounds or non-finite)",
            buffer.skipped_invalid_coords,
        )
    buffer.coords = np.asarray(values, dtype=np.float64)
    return buffer
