"""In-process engine implementing :class:`EngineAdapter`.

Stores ingested traces, builds signatures and groups them into routes on a
background asyncio task.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

from ..config import GROUPING_MIN_MATCH, OVERLAP_THRESHOLD_M
from ..matching import RouteSignatureBuilder, SignatureCache, group_signatures
from ..models import (
    ActivityMetrics,
    FtpTrend,
    PeriodStats,
    RouteGroup,
    RoutePoint,
    RouteSignature,
)
from .adapter import (
    DETECTION_COMPLETE,
    DETECTION_ERROR,
    DETECTION_IDLE,
    DETECTION_RUNNING,
)

LOGGER = logging.getLogger(__name__)


def unpack_flat_coords(
    ids: Sequence[str], flat_coords: Sequence[float], offsets: Sequence[int]
) -> Dict[str, List[RoutePoint]]:
    """Split an interleaved lat/lng buffer back into per-activity traces.

    ``offsets`` are point-pair indices; the last trace runs to the buffer end.
    """

    if len(ids) != len(offsets):
        raise ValueError("ids and offsets must be the same length")
    if len(flat_coords) % 2:
        raise ValueError("flat_coords must hold lat/lng pairs")
    total_pairs = len(flat_coords) // 2
    traces: Dict[str, List[RoutePoint]] = {}
    for idx, activity_id in enumerate(ids):
        start = int(offsets[idx])
        end = int(offsets[idx + 1]) if idx + 1 < len(offsets) else total_pairs
        if end < start:
            raise ValueError("offsets must be increasing")
        traces[activity_id] = [
            RoutePoint(float(flat_coords[2 * i]), float(flat_coords[2 * i + 1]))
            for i in range(start, end)
        ]
    return traces


class LocalRouteEngine:
    """Reference engine keeping everything in memory."""

    def __init__(
        self,
        *,
        builder: RouteSignatureBuilder | None = None,
        min_match: float = GROUPING_MIN_MATCH,
        threshold_m: float = OVERLAP_THRESHOLD_M,
    ) -> None:
        self._builder = builder or RouteSignatureBuilder()
        self._min_match = min_match
        self._threshold_m = threshold_m
        self._traces: Dict[str, List[RoutePoint]] = {}
        self._sport_types: Dict[str, str] = {}
        self._signatures = SignatureCache(max_entries=1_000_000)
        self._metrics: Dict[str, ActivityMetrics] = {}
        self._groups: List[RouteGroup] = []
        self._status = DETECTION_IDLE
        self._task: Optional[asyncio.Task[None]] = None
        self._rerun_requested = False

    # -- ingest ---------------------------------------------------------
    def add_activities(
        self,
        ids: Sequence[str],
        flat_coords: Sequence[float],
        offsets: Sequence[int],
        sport_types: Sequence[str],
    ) -> None:
        if len(sport_types) != len(ids):
            raise ValueError("sport_types must match ids")
        traces = unpack_flat_coords(ids, flat_coords, offsets)
        for activity_id, sport in zip(ids, sport_types):
            self._traces[activity_id] = traces[activity_id]
            self._sport_types[activity_id] = sport
            self._signatures.discard(activity_id)
        LOGGER.debug("Engine ingested %d activities (total=%d)", len(ids), len(self._traces))

    def set_activity_metrics(self, metrics: Sequence[ActivityMetrics]) -> None:
        for item in metrics:
            self._metrics[item.activity_id] = item

    def activity_ids(self) -> List[str]:
        return list(self._traces)

    def clear(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self._rerun_requested = False
        self._traces.clear()
        self._sport_types.clear()
        self._signatures.clear()
        self._metrics.clear()
        self._groups = []
        self._status = DETECTION_IDLE

    # -- detection ------------------------------------------------------
    def start_section_detection(self) -> None:
        if self._task is not None and not self._task.done():
            # The running pass took its snapshot already; go round once more.
            self._rerun_requested = True
            return
        self._rerun_requested = False
        self._status = DETECTION_RUNNING
        self._task = asyncio.get_running_loop().create_task(self._detect())

    def poll_section_detection(self) -> str:
        return self._status

    def _signature(self, activity_id: str) -> Optional[RouteSignature]:
        cached = self._signatures.get(activity_id)
        if cached is not None:
            return cached
        signature = self._builder.build(activity_id, self._traces[activity_id])
        if signature is not None:
            self._signatures.set(signature)
        return signature

    async def _group_all(self) -> List[RouteGroup]:
        by_sport: Dict[str, List[RouteSignature]] = {}
        for activity_id in list(self._traces):
            if activity_id not in self._traces:
                continue
            signature = self._signature(activity_id)
            if signature is not None:
                by_sport.setdefault(self._sport_types[activity_id], []).append(signature)
            await asyncio.sleep(0)
        groups: List[RouteGroup] = []
        for sport, signatures in by_sport.items():
            for members in group_signatures(
                signatures, min_match=self._min_match, threshold_m=self._threshold_m
            ):
                groups.append(
                    RouteGroup(group_id=members[0], activity_ids=members, sport_type=sport)
                )
            await asyncio.sleep(0)
        return groups

    async def _detect(self) -> None:
        try:
            while True:
                self._rerun_requested = False
                groups = await self._group_all()
                if not self._rerun_requested:
                    break
                LOGGER.debug("Activities added during detection; regrouping")
            self._groups = groups
            self._status = DETECTION_COMPLETE
            LOGGER.info("Route detection complete: %d groups", len(groups))
        except asyncio.CancelledError:
            if self._task is asyncio.current_task():
                self._status = DETECTION_IDLE
            raise
        except Exception:
            LOGGER.exception("Route detection failed")
            self._status = DETECTION_ERROR

    def get_groups(self) -> List[RouteGroup]:
        return list(self._groups)

    # -- aggregate queries ----------------------------------------------
    def get_period_stats(self, start_epoch_s: int, end_epoch_s: int) -> PeriodStats:
        selected = [
            m for m in self._metrics.values() if start_epoch_s <= m.start_epoch_s <= end_epoch_s
        ]
        return PeriodStats(
            count=len(selected),
            total_duration=float(sum(m.duration_s for m in selected)),
        )

    def get_ftp_trend(self) -> FtpTrend:
        with_ftp = sorted(
            (m for m in self._metrics.values() if m.ftp is not None),
            key=lambda m: m.start_epoch_s,
            reverse=True,
        )
        if not with_ftp:
            return FtpTrend(latest_ftp=None, previous_ftp=None)
        latest = with_ftp[0].ftp
        previous = next((m.ftp for m in with_ftp[1:] if m.ftp != latest), None)
        return FtpTrend(latest_ftp=latest, previous_ftp=previous)
