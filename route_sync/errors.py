"""Central error types used across the application."""

from __future__ import annotations


class RouteSyncError(RuntimeError):
    """Base error for the route sync pipeline."""


class MissingCredentialsError(RouteSyncError):
    """Raised when the live fetch path has neither an API key nor a token."""


class APIError(RouteSyncError):
    """Base error for upstream API failures."""


class APIPermissionError(APIError):
    """Raised when the API reports insufficient scopes or authentication issues."""


class APIResourceNotFoundError(APIError):
    """Raised when an activity or its map does not exist."""


class RateLimitExceededError(APIError):
    """Raised when throttling responses persist after every retry."""


__all__ = [
    "RouteSyncError",
    "MissingCredentialsError",
    "APIError",
    "APIPermissionError",
    "APIResourceNotFoundError",
    "RateLimitExceededError",
]
