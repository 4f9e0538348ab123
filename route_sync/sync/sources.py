"""Trace sources: where a sync cycle gets its GPS data from."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from ..api_client import ThrottledHttpClient, auth_header, fetch_activity_maps, parse_map_payload
from ..models import Activity, RoutePoint

LOGGER = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]
Traces = Dict[str, Optional[List[RoutePoint]]]


class TraceSource(Protocol):
    """Fetch GPS traces for a batch of activities.

    Missing or unusable traces map to ``None``; they are not errors.
    """

    async def fetch_traces(
        self,
        activities: Sequence[Activity],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Traces:
        ...


class FixtureTraceSource:
    """Serve traces from fixture map payloads keyed by activity id."""

    def __init__(self, fixtures: Mapping[str, Any]) -> None:
        self._fixtures = dict(fixtures)

    @classmethod
    def from_file(cls, path: str | Path) -> "FixtureTraceSource":
        """Load fixtures from a JSON object ``{activity_id: map_payload}``."""

        with Path(path).open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        if not isinstance(data, dict):
            raise ValueError(f"Fixture file {path} must contain a JSON object")
        LOGGER.info("Loaded %d demo fixtures from %s", len(data), path)
        return cls({str(key): value for key, value in data.items()})

    def activity_ids(self) -> List[str]:
        return list(self._fixtures)

    async def fetch_traces(
        self,
        activities: Sequence[Activity],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Traces:
        traces: Traces = {}
        for activity in activities:
            payload = self._fixtures.get(activity.id)
            if payload is None:
                traces[activity.id] = None
                continue
            traces[activity.id] = parse_map_payload(activity.id, payload).latlngs
        if on_progress is not None:
            on_progress(len(activities), len(activities))
        return traces


class ApiTraceSource:
    """Download traces through the shared throttled client."""

    def __init__(self, client: ThrottledHttpClient | None = None) -> None:
        self._client = client or ThrottledHttpClient()

    async def fetch_traces(
        self,
        activities: Sequence[Activity],
        on_progress: Optional[ProgressCallback] = None,
    ) -> Traces:
        # Fail fast before any request is queued.
        auth_header(self._client.credentials)
        results = await fetch_activity_maps(
            self._client,
            [activity.id for activity in activities],
            on_progress=on_progress,
        )
        return {
            result.activity_id: result.latlngs if result.success else None
            for result in results
        }
