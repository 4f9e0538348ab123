"""Sync cycle orchestration."""

from .buffers import FlatCoordinateBuffer, build_flat_buffer  # noqa: F401
from .cancellation import SyncCancellation  # noqa: F401
from .orchestrator import (  # noqa: F401
    OUTCOME_CANCELLED,
    OUTCOME_DISCARDED,
    OUTCOME_ENGINE_UNAVAILABLE,
    OUTCOME_ERROR,
    OUTCOME_NO_DATA,
    OUTCOME_SYNCED,
    SyncOrchestrator,
    SyncResult,
    activity_metrics,
    clear_route_cache,
)
from .sources import ApiTraceSource, FixtureTraceSource, TraceSource  # noqa: F401
from .state import SYNC_STATE, SyncProgress, SyncState, get_sync_generation  # noqa: F401
