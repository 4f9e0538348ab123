"""Process-wide sync state: generation counter and progress."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

LOGGER = logging.getLogger(__name__)

STATUS_IDLE = "idle"
STATUS_FETCHING = "fetching"
STATUS_PROCESSING = "processing"
STATUS_COMPUTING = "computing"
STATUS_COMPLETE = "complete"
STATUS_ERROR = "error"

SYNC_STATUSES = frozenset(
    {
        STATUS_IDLE,
        STATUS_FETCHING,
        STATUS_PROCESSING,
        STATUS_COMPUTING,
        STATUS_COMPLETE,
        STATUS_ERROR,
    }
)
_ACTIVE_STATUSES = frozenset({STATUS_FETCHING, STATUS_PROCESSING, STATUS_COMPUTING})


@dataclass(frozen=True, slots=True)
class SyncProgress:
    status: str = STATUS_IDLE
    completed: int = 0
    total: int = 0
    message: str = ""

    def __post_init__(self) -> None:
        if self.status not in SYNC_STATUSES:
            raise ValueError(f"Unknown sync status {self.status!r}")


IDLE_PROGRESS = SyncProgress()

ProgressListener = Callable[[SyncProgress], None]


class SyncState:
    """Generation counter plus the latest progress snapshot.

    The generation only moves forward and changes exactly once per
    :meth:`reset`. Work that captured an older value must not commit.
    """

    def __init__(self) -> None:
        self._generation = 0
        self._progress = IDLE_PROGRESS
        self._last_sync_timestamp: Optional[datetime] = None
        self._listeners: List[ProgressListener] = []

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def progress(self) -> SyncProgress:
        return self._progress

    @property
    def is_syncing(self) -> bool:
        return self._progress.status in _ACTIVE_STATUSES

    @property
    def last_sync_timestamp(self) -> Optional[datetime]:
        return self._last_sync_timestamp

    def reset(self) -> int:
        """Invalidate in-flight work and return progress to idle."""

        self._generation += 1
        LOGGER.info("Sync state reset; generation now %d", self._generation)
        self.set_progress(IDLE_PROGRESS)
        return self._generation

    def set_progress(self, progress: SyncProgress) -> None:
        self._progress = progress
        if progress.status == STATUS_COMPLETE:
            self._last_sync_timestamp = datetime.now(timezone.utc)
        for listener in list(self._listeners):
            listener(progress)

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """Register a progress listener; returns a function that removes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe


SYNC_STATE = SyncState()


def get_sync_generation() -> int:
    return SYNC_STATE.generation
