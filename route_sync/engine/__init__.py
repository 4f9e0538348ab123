"""Route matching engine boundary and the in-process implementation."""

from .adapter import (
    DETECTION_COMPLETE,
    DETECTION_ERROR,
    DETECTION_IDLE,
    DETECTION_RUNNING,
    EngineAdapter,
)
from .local import LocalRouteEngine, unpack_flat_coords

__all__ = [
    "DETECTION_COMPLETE",
    "DETECTION_ERROR",
    "DETECTION_IDLE",
    "DETECTION_RUNNING",
    "EngineAdapter",
    "LocalRouteEngine",
    "unpack_flat_coords",
]
