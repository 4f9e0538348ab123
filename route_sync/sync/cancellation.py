"""Cooperative cancellation passed explicitly into a sync cycle."""

from __future__ import annotations


class SyncCancellation:
    """Two independent stop signals checked at the same points.

    ``unmount`` means the caller went away; ``abort`` means it asked to
    stop. Either one cancels.
    """

    def __init__(self) -> None:
        self._mounted = True
        self._aborted = False

    @property
    def mounted(self) -> bool:
        return self._mounted

    @property
    def aborted(self) -> bool:
        return self._aborted

    @property
    def cancelled(self) -> bool:
        return self._aborted or not self._mounted

    def abort(self) -> None:
        self._aborted = True

    def unmount(self) -> None:
        self._mounted = False
