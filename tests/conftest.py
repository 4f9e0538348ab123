"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable trace builders and fakes
for the geometry, engine and sync tests.
"""
from __future__ import annotations

import os
import sys
from typing import Dict, List, Optional, Sequence

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from route_sync.engine.adapter import DETECTION_COMPLETE
from route_sync.models import FtpTrend, PeriodStats, RoutePoint
from route_sync.sync.state import SyncState


# --- Factory helpers -------------------------------------------------
def make_line(start_lat: float, start_lng: float, count: int, step_deg: float = 0.0005) -> List[RoutePoint]:
    """Points heading due east from the start, ``step_deg`` apart."""
    return [RoutePoint(start_lat, start_lng + i * step_deg) for i in range(count)]


def make_loop(center_lat: float, center_lng: float, half_side_deg: float = 0.005, per_side: int = 10) -> List[RoutePoint]:
    """Closed square ending where it started."""
    corners = [
        (center_lat - half_side_deg, center_lng - half_side_deg),
        (center_lat - half_side_deg, center_lng + half_side_deg),
        (center_lat + half_side_deg, center_lng + half_side_deg),
        (center_lat + half_side_deg, center_lng - half_side_deg),
        (center_lat - half_side_deg, center_lng - half_side_deg),
    ]
    points: List[RoutePoint] = []
    for (lat1, lng1), (lat2, lng2) in zip(corners, corners[1:]):
        for i in range(per_side):
            t = i / per_side
            points.append(RoutePoint(lat1 + (lat2 - lat1) * t, lng1 + (lng2 - lng1) * t))
    points.append(RoutePoint(*corners[-1]))
    return points


def as_payload(points: Sequence[RoutePoint]) -> Dict[str, object]:
    """Map payload in the upstream ``latlngs`` shape."""
    return {"bounds": None, "latlngs": [[p.lat, p.lng] for p in points]}


class FakeEngine:
    """Records every call; poll statuses are served from a script."""

    def __init__(self, statuses: Optional[Sequence[str]] = None):
        self.statuses = list(statuses or [DETECTION_COMPLETE])
        self.added: List[dict] = []
        self.started = 0
        self.polls = 0
        self.metrics = []

    def add_activities(self, ids, flat_coords, offsets, sport_types):
        self.added.append(
            {
                "ids": list(ids),
                "flat_coords": list(flat_coords),
                "offsets": list(offsets),
                "sport_types": list(sport_types),
            }
        )

    def set_activity_metrics(self, metrics):
        self.metrics.extend(metrics)

    def start_section_detection(self):
        self.started += 1

    def poll_section_detection(self):
        self.polls += 1
        if len(self.statuses) > 1:
            return self.statuses.pop(0)
        return self.statuses[0]

    def get_period_stats(self, start_epoch_s, end_epoch_s):
        return PeriodStats(count=0, total_duration=0.0)

    def get_ftp_trend(self):
        return FtpTrend(latest_ftp=None, previous_ftp=None)


class StaticSource:
    """Trace source serving a fixed mapping, with an optional hook run mid-fetch."""

    def __init__(self, traces, on_fetch=None):
        self.traces = traces
        self.on_fetch = on_fetch
        self.calls = 0

    async def fetch_traces(self, activities, on_progress=None):
        self.calls += 1
        if self.on_fetch is not None:
            self.on_fetch()
        result = {a.id: self.traces.get(a.id) for a in activities}
        if on_progress is not None:
            on_progress(len(activities), len(activities))
        return result


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def sync_state():
    return SyncState()


@pytest.fixture
def progress_log(sync_state):
    seen = []
    sync_state.subscribe(seen.append)
    return seen
