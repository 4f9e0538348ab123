"""Route sync: fetch GPS traces, build route signatures and detect shared routes."""

from .engine import EngineAdapter, LocalRouteEngine  # noqa: F401
from .sync import SyncCancellation, SyncOrchestrator, SyncResult, clear_route_cache  # noqa: F401

__version__ = "0.1.0"
