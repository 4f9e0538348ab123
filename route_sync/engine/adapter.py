"""Narrow call surface of the route matching engine."""

from __future__ import annotations

from typing import Any, Protocol, Sequence, runtime_checkable

from ..models import ActivityMetrics, FtpTrend, PeriodStats

# Values returned by ``poll_section_detection``.
DETECTION_IDLE = "idle"
DETECTION_RUNNING = "running"
DETECTION_COMPLETE = "complete"
DETECTION_ERROR = "error"

DETECTION_STATUSES = frozenset(
    {DETECTION_IDLE, DETECTION_RUNNING, DETECTION_COMPLETE, DETECTION_ERROR}
)


@runtime_checkable
class EngineAdapter(Protocol):
    """Everything the sync orchestrator may call on the engine.

    Implementations may return plain values or awaitables from any method;
    the orchestrator awaits whichever it gets.
    """

    def add_activities(
        self,
        ids: Sequence[str],
        flat_coords: Sequence[float],
        offsets: Sequence[int],
        sport_types: Sequence[str],
    ) -> Any:
        """Ingest one batch; re-adding an id replaces its trace."""

    def set_activity_metrics(self, metrics: Sequence[ActivityMetrics]) -> Any:
        """Store per-activity duration/FTP figures for the summary queries."""

    def start_section_detection(self) -> Any:
        """Begin background clustering without blocking."""

    def poll_section_detection(self) -> Any:
        """Return one of ``idle``, ``running``, ``complete`` or ``error``."""

    def get_period_stats(self, start_epoch_s: int, end_epoch_s: int) -> PeriodStats:
        ...

    def get_ftp_trend(self) -> FtpTrend:
        ...
