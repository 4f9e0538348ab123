"""One sync cycle: fetch traces, pack them, hand them to the engine, poll.

Every resumption point re-checks the caller's cancellation token. The
generation captured at the start is compared once more immediately before
ingest; a mismatch discards the batch without touching the engine, and the
route cache is only written while the generation still matches.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from ..config import DETECTION_POLL_INTERVAL_S, DETECTION_TIMEOUT_S, MIN_TRACE_POINTS
from ..engine.adapter import (
    DETECTION_COMPLETE,
    DETECTION_ERROR,
    DETECTION_IDLE,
    DETECTION_RUNNING,
    EngineAdapter,
)
from ..errors import RouteSyncError
from ..matching import RouteSignatureBuilder
from ..models import Activity, ActivityMetrics, RouteSignature
from ..storage import RouteCacheStore
from .buffers import FlatCoordinateBuffer, build_flat_buffer
from .cancellation import SyncCancellation
from .sources import TraceSource
from .state import (
    IDLE_PROGRESS,
    STATUS_COMPLETE,
    STATUS_COMPUTING,
    STATUS_ERROR,
    STATUS_FETCHING,
    STATUS_PROCESSING,
    SYNC_STATE,
    SyncProgress,
    SyncState,
)

LOGGER = logging.getLogger(__name__)

OUTCOME_SYNCED = "synced"
OUTCOME_DISCARDED = "discarded"
OUTCOME_CANCELLED = "cancelled"
OUTCOME_ENGINE_UNAVAILABLE = "engine_unavailable"
OUTCOME_NO_DATA = "no_data"
OUTCOME_ERROR = "error"

ENGINE_UNAVAILABLE_MESSAGE = "Engine not available"
DISCARDED_MESSAGE = "Sync reset - results discarded"
CANCELLED_MESSAGE = "Sync cancelled"


@dataclass(slots=True)
class SyncResult:
    outcome: str
    message: str = ""
    synced_ids: List[str] = field(default_factory=list)
    with_gps_count: int = 0
    failed_no_trace: int = 0
    failed_too_few_points: int = 0
    skipped_invalid_coords: int = 0
    detection_status: Optional[str] = None

    @property
    def discarded(self) -> bool:
        return self.outcome == OUTCOME_DISCARDED

    @property
    def cancelled(self) -> bool:
        return self.outcome == OUTCOME_CANCELLED


async def _resolve(value: Any) -> Any:
    """Await ``value`` when the engine handed back an awaitable."""

    if inspect.isawaitable(value):
        return await value
    return value


class SyncOrchestrator:
    """Drive a sync cycle against an engine with an injected trace source."""

    def __init__(
        self,
        engine: Optional[EngineAdapter],
        source: TraceSource,
        *,
        state: SyncState = SYNC_STATE,
        store: Optional[RouteCacheStore] = None,
        builder: Optional[RouteSignatureBuilder] = None,
        poll_interval: float = DETECTION_POLL_INTERVAL_S,
        detection_timeout: float = DETECTION_TIMEOUT_S,
        min_points: int = MIN_TRACE_POINTS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._engine = engine
        self._source = source
        self._state = state
        self._store = store
        self._builder = builder or RouteSignatureBuilder()
        self._poll_interval = poll_interval
        self._detection_timeout = detection_timeout
        self._min_points = min_points
        self._clock = clock
        self._sleep = sleep

    @property
    def state(self) -> SyncState:
        return self._state

    def _emit(
        self,
        cancellation: SyncCancellation,
        generation: int,
        status: str,
        completed: int = 0,
        total: int = 0,
        message: str = "",
    ) -> None:
        # A cancelled or superseded cycle must not overwrite newer progress.
        if cancellation.cancelled or self._state.generation != generation:
            return
        self._state.set_progress(
            SyncProgress(status=status, completed=completed, total=total, message=message)
        )

    def _cancelled(self, activities: Sequence[Activity]) -> SyncResult:
        LOGGER.info("Sync of %d activities cancelled", len(activities))
        return SyncResult(outcome=OUTCOME_CANCELLED, message=CANCELLED_MESSAGE)

    async def run(
        self,
        activities: Sequence[Activity],
        cancellation: Optional[SyncCancellation] = None,
    ) -> SyncResult:
        cancellation = cancellation or SyncCancellation()
        start_generation = self._state.generation

        if cancellation.cancelled:
            return self._cancelled(activities)
        if self._engine is None:
            LOGGER.warning("Route engine not available; skipping sync")
            return SyncResult(
                outcome=OUTCOME_ENGINE_UNAVAILABLE, message=ENGINE_UNAVAILABLE_MESSAGE
            )
        engine = self._engine

        total = len(activities)
        self._emit(
            cancellation,
            start_generation,
            STATUS_FETCHING,
            0,
            total,
            f"Fetching GPS data for {total} activities",
        )

        def _on_fetch_progress(completed: int, expected: int) -> None:
            self._emit(
                cancellation,
                start_generation,
                STATUS_FETCHING,
                completed,
                expected,
                f"Fetched {completed}/{expected} activities",
            )

        try:
            traces = await self._source.fetch_traces(activities, on_progress=_on_fetch_progress)
        except RouteSyncError as exc:
            self._emit(cancellation, start_generation, STATUS_ERROR, 0, total, str(exc))
            raise

        if cancellation.cancelled:
            return self._cancelled(activities)

        buffer = build_flat_buffer(activities, traces, min_points=self._min_points)
        LOGGER.info(
            "Fetched %d activities: %d with GPS, %d without trace, %d too short",
            total,
            len(buffer.ids),
            buffer.failed_no_trace,
            buffer.failed_too_few_points,
        )
        if not buffer.ids:
            self._emit(cancellation, start_generation, IDLE_PROGRESS.status)
            return self._result(OUTCOME_NO_DATA, buffer, message="No activities with GPS data")

        signatures = self._build_signatures(buffer)

        if self._state.generation != start_generation:
            LOGGER.info(
                "Sync generation moved from %d to %d; discarding %d activities",
                start_generation,
                self._state.generation,
                len(buffer.ids),
            )
            return SyncResult(outcome=OUTCOME_DISCARDED, message=DISCARDED_MESSAGE)
        if cancellation.cancelled:
            return self._cancelled(activities)

        try:
            await _resolve(
                engine.add_activities(
                    list(buffer.ids),
                    buffer.coords.tolist(),
                    list(buffer.offsets),
                    list(buffer.sport_types),
                )
            )
            metrics = activity_metrics(activities, buffer.ids)
            if metrics:
                await _resolve(engine.set_activity_metrics(metrics))
        except Exception as exc:
            return self._engine_failed(cancellation, start_generation, buffer, "ingest", exc)

        # The ingest await is a suspension point; a reset during it must not
        # repopulate a store that was just cleared.
        if self._store is not None:
            if self._state.generation != start_generation:
                LOGGER.info(
                    "Sync generation moved from %d to %d during ingest; skipping route cache write",
                    start_generation,
                    self._state.generation,
                )
            else:
                self._commit_to_store(activities, buffer, signatures)
        self._emit(
            cancellation,
            start_generation,
            STATUS_PROCESSING,
            len(buffer.ids),
            total,
            f"Processing {len(buffer.ids)} routes",
        )

        if cancellation.cancelled:
            return self._cancelled(activities)
        try:
            await _resolve(engine.start_section_detection())
        except Exception as exc:
            return self._engine_failed(cancellation, start_generation, buffer, "detection start", exc)
        self._emit(
            cancellation,
            start_generation,
            STATUS_COMPUTING,
            len(buffer.ids),
            total,
            "Detecting shared routes",
        )

        detection_status = await self._await_detection(engine, cancellation)
        if detection_status is None:
            return self._cancelled(activities)

        message = f"Synced {len(buffer.ids)} activities with GPS data"
        self._emit(
            cancellation,
            start_generation,
            STATUS_COMPLETE,
            len(buffer.ids),
            total,
            message,
        )
        result = self._result(OUTCOME_SYNCED, buffer, message=message)
        result.detection_status = detection_status
        return result

    async def _await_detection(
        self, engine: EngineAdapter, cancellation: SyncCancellation
    ) -> Optional[str]:
        """Poll until detection settles; ``None`` means the caller cancelled."""

        deadline = self._clock() + self._detection_timeout
        while True:
            if cancellation.cancelled:
                return None
            try:
                status = await _resolve(engine.poll_section_detection())
            except Exception:
                LOGGER.exception("Polling route detection failed")
                return DETECTION_ERROR
            if status == DETECTION_RUNNING:
                if self._clock() >= deadline:
                    LOGGER.warning(
                        "Route detection still running after %.1fs; continuing without it",
                        self._detection_timeout,
                    )
                    return status
                await self._sleep(self._poll_interval)
                continue
            if status in (DETECTION_COMPLETE, DETECTION_IDLE):
                return status
            if status == DETECTION_ERROR:
                LOGGER.warning("Route detection reported an error")
            else:
                LOGGER.warning("Unexpected detection status %r", status)
            return status

    def _engine_failed(
        self,
        cancellation: SyncCancellation,
        generation: int,
        buffer: FlatCoordinateBuffer,
        step: str,
        exc: Exception,
    ) -> SyncResult:
        LOGGER.exception("Route engine %s failed", step)
        message = f"Route engine {step} failed: {exc}"
        self._emit(cancellation, generation, STATUS_ERROR, 0, len(buffer.ids), message)
        return self._result(OUTCOME_ERROR, buffer, message=message)

    def _build_signatures(self, buffer: FlatCoordinateBuffer) -> List[RouteSignature]:
        signatures: List[RouteSignature] = []
        for index, activity_id in enumerate(buffer.ids):
            signature = self._builder.build(activity_id, buffer.points_for(index))
            if signature is not None:
                signatures.append(signature)
        return signatures

    def _commit_to_store(
        self,
        activities: Sequence[Activity],
        buffer: FlatCoordinateBuffer,
        signatures: Sequence[RouteSignature],
    ) -> None:
        synced = set(buffer.ids)
        dates = [
            activity.start_date.date()
            for activity in activities
            if activity.id in synced and activity.start_date is not None
        ]
        self._store.record_ingest(signatures, dates)

    @staticmethod
    def _result(outcome: str, buffer: FlatCoordinateBuffer, *, message: str) -> SyncResult:
        synced_ids = list(buffer.ids) if outcome == OUTCOME_SYNCED else []
        return SyncResult(
            outcome=outcome,
            message=message,
            synced_ids=synced_ids,
            with_gps_count=len(buffer.ids),
            failed_no_trace=buffer.failed_no_trace,
            failed_too_few_points=buffer.failed_too_few_points,
            skipped_invalid_coords=buffer.skipped_invalid_coords,
        )


def activity_metrics(
    activities: Sequence[Activity], synced_ids: Sequence[str]
) -> List[ActivityMetrics]:
    """Summary figures for the synced activities that carry a start date."""

    synced = set(synced_ids)
    return [
        ActivityMetrics(
            activity_id=activity.id,
            start_epoch_s=int(activity.start_date.timestamp()),
            duration_s=float(activity.duration_s or 0.0),
            ftp=activity.ftp,
        )
        for activity in activities
        if activity.id in synced and activity.start_date is not None
    ]


def clear_route_cache(
    state: SyncState = SYNC_STATE, store: Optional[RouteCacheStore] = None
) -> int:
    """Invalidate in-flight syncs and wipe persisted signatures.

    Returns the new generation.
    """

    generation = state.reset()
    if store is not None:
        store.clear()
    return generation
