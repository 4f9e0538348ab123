"""Dataclasses shared by the geometry, sync and engine layers."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class RoutePoint:
    """A latitude/longitude pair in degrees."""

    lat: float
    lng: float

    @classmethod
    def from_pair(cls, pair: Sequence[float]) -> "RoutePoint":
        if len(pair) < 2:
            raise ValueError("Expected [lat, lng] pair")
        return cls(float(pair[0]), float(pair[1]))

    def is_finite(self) -> bool:
        return math.isfinite(self.lat) and math.isfinite(self.lng)

    def is_valid(self) -> bool:
        """Finite and inside the WGS84 coordinate range."""

        return (
            self.is_finite()
            and -90.0 <= self.lat <= 90.0
            and -180.0 <= self.lng <= 180.0
        )


Polyline = Sequence[RoutePoint]


@dataclass(frozen=True, slots=True)
class Bounds:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @classmethod
    def from_points(cls, points: Polyline) -> Optional["Bounds"]:
        if not points:
            return None
        lats = [p.lat for p in points]
        lngs = [p.lng for p in points]
        return cls(min(lats), max(lats), min(lngs), max(lngs))

    def center(self) -> RoutePoint:
        return RoutePoint(
            (self.min_lat + self.max_lat) / 2.0,
            (self.min_lng + self.max_lng) / 2.0,
        )


@dataclass(frozen=True, slots=True)
class RouteSignature:
    """Compact, comparable representation of one activity's GPS trace."""

    activity_id: str
    points: Tuple[RoutePoint, ...]
    distance: float
    bounds: Bounds
    center: RoutePoint
    start_region_hash: str
    end_region_hash: str
    is_loop: bool
    elevation_gain: Optional[float] = None


@dataclass(slots=True)
class Activity:
    """Activity summary as delivered by the activities listing."""

    id: str
    sport_type: Optional[str] = None
    start_date: Optional[datetime] = None
    duration_s: Optional[float] = None
    ftp: Optional[float] = None


@dataclass(slots=True)
class ActivityMetrics:
    """Per-activity figures the engine aggregates for summary queries."""

    activity_id: str
    start_epoch_s: int
    duration_s: float
    ftp: Optional[float] = None


@dataclass(slots=True)
class Credentials:
    api_key: Optional[str] = None
    access_token: Optional[str] = None


@dataclass(slots=True)
class ActivityMapResult:
    """Outcome of fetching one activity's map payload."""

    activity_id: str
    bounds: Optional[Bounds] = None
    latlngs: Optional[List[RoutePoint]] = None
    success: bool = False
    error: Optional[str] = None


@dataclass(slots=True)
class PeriodStats:
    count: int
    total_duration: float


@dataclass(slots=True)
class FtpTrend:
    latest_ftp: Optional[float]
    previous_ftp: Optional[float]


@dataclass(slots=True)
class RouteGroup:
    """Activities whose signatures overlap enough to be the same route."""

    group_id: str
    activity_ids: List[str] = field(default_factory=list)
    sport_type: Optional[str] = None
