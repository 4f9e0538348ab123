"""Central configuration for the route sync pipeline.

All values are constants imported by the rest of the package. Adjust as needed
for your environment. Secrets are read from environment variables (optionally
via a local `.env`).
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# API settings
# ---------------------------------------------------------------------------
API_BASE_URL = os.getenv("INTERVALS_API_BASE_URL", "https://intervals.icu/api/v1")

# Either an API key (sent as Basic auth with user "API_KEY") or an OAuth
# access token (sent as Bearer). Do not hardcode secrets.
INTERVALS_API_KEY = os.getenv("INTERVALS_API_KEY", "")
INTERVALS_ACCESS_TOKEN = os.getenv("INTERVALS_ACCESS_TOKEN", "")

# HTTP session pool sizes for concurrent requests.
HTTP_POOL_CONNECTIONS = 20
HTTP_POOL_MAXSIZE = 20

# Request timeout in seconds.
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 30)


# ---------------------------------------------------------------------------
# Rate limiting / retry
# ---------------------------------------------------------------------------
# Minimum spacing (seconds) between the start of two outbound requests.
RATE_LIMIT_MIN_INTERVAL_S = _env_float("RATE_LIMIT_MIN_INTERVAL_S", 0.1)
# No more than this many requests inside the trailing window.
RATE_LIMIT_MAX_PER_WINDOW = _env_int("RATE_LIMIT_MAX_PER_WINDOW", 80)
RATE_LIMIT_WINDOW_S = _env_float("RATE_LIMIT_WINDOW_S", 10.0)
# Extra wait added once the oldest request leaves the window.
RATE_LIMIT_SAFETY_MARGIN_S = _env_float("RATE_LIMIT_SAFETY_MARGIN_S", 0.05)

# Retries after a 429 response; backoff is API_INITIAL_BACKOFF_S * 2**attempt.
API_MAX_RETRIES = _env_int("API_MAX_RETRIES", 3)
API_INITIAL_BACKOFF_S = _env_float("API_INITIAL_BACKOFF_S", 1.0)

# Parallel activity map downloads in flight at once.
FETCH_MAX_CONCURRENCY = _env_int("FETCH_MAX_CONCURRENCY", 12)


# ---------------------------------------------------------------------------
# Sync orchestration
# ---------------------------------------------------------------------------
# Traces with fewer valid points than this are skipped.
MIN_TRACE_POINTS = _env_int("MIN_TRACE_POINTS", 4)

# Section detection polling.
DETECTION_POLL_INTERVAL_S = _env_float("DETECTION_POLL_INTERVAL_S", 0.2)
DETECTION_TIMEOUT_S = _env_float("DETECTION_TIMEOUT_S", 60.0)

# Sport type used when an activity does not report one.
DEFAULT_SPORT_TYPE = os.getenv("DEFAULT_SPORT_TYPE", "Ride")

# Fixture file read by the demo source.
DEMO_FIXTURE_PATH = os.getenv("DEMO_FIXTURE_PATH", "demo_routes.json")


# ---------------------------------------------------------------------------
# Geometry / signatures
# ---------------------------------------------------------------------------
# Mean Earth radius (metres) used by every haversine computation.
EARTH_RADIUS_M = 6_371_000.0

# A point counts as matched when a point of the other line is this close.
OVERLAP_THRESHOLD_M = _env_float("OVERLAP_THRESHOLD_M", 50.0)

# Douglas-Peucker tolerance and output cap for stored signatures.
SIGNATURE_SIMPLIFY_TOLERANCE_M = _env_float("SIGNATURE_SIMPLIFY_TOLERANCE_M", 11.0)
SIGNATURE_MAX_POINTS = _env_int("SIGNATURE_MAX_POINTS", 100)

# Coarse grid cell size used for start/end region hashes.
REGION_GRID_SIZE_M = _env_float("REGION_GRID_SIZE_M", 500.0)

# Start and end closer than this mark a loop.
LOOP_THRESHOLD_M = _env_float("LOOP_THRESHOLD_M", 100.0)

# Minimum two-way overlap for two signatures to share a route group. Kept
# independent from OVERLAP_THRESHOLD_M.
GROUPING_MIN_MATCH = _env_float("GROUPING_MIN_MATCH", 0.65)

# Maximum number of signatures kept in the in-memory LRU cache.
SIGNATURE_CACHE_SIZE = _env_int("SIGNATURE_CACHE_SIZE", 512)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------
ROUTE_CACHE_PATH = os.getenv("ROUTE_CACHE_PATH", "route_cache.json")

# Persist the route cache after every successful ingest.
ROUTE_CACHE_AUTOSAVE = _env_bool("ROUTE_CACHE_AUTOSAVE", True)
