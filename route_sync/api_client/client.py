"""Throttled JSON client: pacing, 429 retries with exponential backoff."""

from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import requests

from ..config import (
    API_BASE_URL,
    API_INITIAL_BACKOFF_S,
    API_MAX_RETRIES,
    INTERVALS_ACCESS_TOKEN,
    INTERVALS_API_KEY,
    REQUEST_TIMEOUT,
)
from ..errors import APIError, MissingCredentialsError, RateLimitExceededError
from ..models import Credentials
from .rate_limiter import RateLimiter, get_default_limiter
from .response_handling import classify_response_status
from .session import get_default_session

LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def default_credentials() -> Credentials:
    """Credentials taken from configuration (environment)."""

    return Credentials(
        api_key=INTERVALS_API_KEY or None,
        access_token=INTERVALS_ACCESS_TOKEN or None,
    )


def auth_header(credentials: Optional[Credentials]) -> str:
    """Return the Authorization header value; OAuth token wins over API key."""

    if credentials is not None and credentials.access_token:
        return f"Bearer {credentials.access_token}"
    if credentials is not None and credentials.api_key:
        encoded = base64.b64encode(f"API_KEY:{credentials.api_key}".encode("utf-8"))
        return f"Basic {encoded.decode('ascii')}"
    raise MissingCredentialsError("No credentials available")


class ThrottledHttpClient:
    """Rate-limited GET client shared by every live fetch.

    All callers share one :class:`RateLimiter` unless a different one is
    injected. Blocking ``requests`` calls run in the loop's default executor.
    """

    def __init__(
        self,
        *,
        credentials: Optional[Credentials] = None,
        session: requests.Session | None = None,
        limiter: RateLimiter | None = None,
        base_url: str = API_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        max_retries: int = API_MAX_RETRIES,
        initial_backoff: float = API_INITIAL_BACKOFF_S,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._credentials = credentials if credentials is not None else default_credentials()
        self._session = session or get_default_session()
        self._limiter = limiter or get_default_limiter()
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._initial_backoff = initial_backoff
        self._sleep = sleep

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    def url(self, path: str) -> str:
        return f"{self._base_url}/{path.lstrip('/')}"

    async def _send(
        self, url: str, headers: Dict[str, str], params: Optional[Dict[str, Any]]
    ) -> requests.Response:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: self._session.get(
                url, headers=headers, params=params, timeout=self._timeout
            ),
        )

    async def get_json(
        self,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        context: str = "request",
    ) -> Any:
        """GET ``path`` and decode JSON, retrying only on 429.

        Raises:
            MissingCredentialsError: when no API key or token is configured.
            RateLimitExceededError: when 429 persists after ``max_retries``.
            APIError: for network failures, other HTTP errors and bad JSON.
        """

        headers = {"Authorization": auth_header(self._credentials)}
        url = self.url(path)
        attempt = 0
        while True:
            backoff = self._initial_backoff * (2**attempt)
            can_retry = attempt < self._max_retries
            await self._limiter.acquire()
            try:
                response = await self._send(url, headers, params)
            except requests.RequestException as exc:
                message = f"{context} network error: {exc.__class__.__name__}"
                LOGGER.error(message)
                raise APIError(message) from exc

            action, error = classify_response_status(
                response,
                context,
                attempt=attempt + 1,
                backoff=backoff,
                can_retry=can_retry,
            )
            if action != "ok":
                # Release the pooled connection before sleeping or raising.
                response.close()
            if action == "retry":
                await self._sleep(backoff)
                attempt += 1
                continue
            if action == "raise":
                if error is None:
                    message = f"{context} still rate limited after {self._max_retries} retries"
                    LOGGER.error(message)
                    raise RateLimitExceededError(message)
                raise error

            try:
                return response.json()
            except ValueError as exc:
                message = f"{context} returned non-JSON payload"
                LOGGER.error(message)
                raise APIError(message) from exc
