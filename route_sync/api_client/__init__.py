"""Rate-limited client for the upstream activity API."""

from .activity_maps import fetch_activity_map, fetch_activity_maps, parse_map_payload  # noqa: F401
from .client import ThrottledHttpClient, auth_header  # noqa: F401
from .rate_limiter import RateLimiter, get_default_limiter  # noqa: F401
from .session import create_default_session, get_default_session  # noqa: F401
