"""Tests for the throttled HTTP client using fake sessions (no network)."""

from __future__ import annotations

import base64
import json

import pytest
import requests

from route_sync.api_client.client import ThrottledHttpClient, auth_header
from route_sync.api_client.response_handling import classify_response_status, extract_error
from route_sync.errors import (
    APIError,
    APIPermissionError,
    APIResourceNotFoundError,
    MissingCredentialsError,
    RateLimitExceededError,
)
from route_sync.models import Credentials


class FakeResp:
    """Minimal fake response matching needed parts of requests.Response."""

    def __init__(self, status_code=200, data=None, headers=None):
        self.status_code = status_code
        self._data = data if data is not None else {}
        self.headers = headers or {}
        self.closed = False

    def json(self):
        if isinstance(self._data, Exception):
            raise self._data
        return self._data

    def close(self):
        self.closed = True

    @property
    def text(self):
        try:
            return json.dumps(self._data)
        except Exception:
            return str(self._data)


class FakeSession:
    """Serves queued responses (or raises queued exceptions) in order."""

    def __init__(self, responses):
        self._responses = list(responses)
        self.calls = []

    def get(self, url, headers=None, params=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "params": params, "timeout": timeout})
        item = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(item, Exception):
            raise item
        return item


class NoopLimiter:
    def __init__(self):
        self.acquired = 0

    async def acquire(self):
        self.acquired += 1


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


def _client(responses, credentials=None, **kwargs):
    session = FakeSession(responses)
    limiter = NoopLimiter()
    sleeper = SleepRecorder()
    client = ThrottledHttpClient(
        credentials=credentials or Credentials(api_key="secret"),
        session=session,
        limiter=limiter,
        base_url="https://api.example.test/v1/",
        sleep=sleeper,
        **kwargs,
    )
    return client, session, limiter, sleeper


def test_auth_header_prefers_access_token():
    creds = Credentials(api_key="key", access_token="tok")
    assert auth_header(creds) == "Bearer tok"


def test_auth_header_basic_for_api_key():
    header = auth_header(Credentials(api_key="abc123"))
    scheme, encoded = header.split(" ", 1)
    assert scheme == "Basic"
    assert base64.b64decode(encoded).decode() == "API_KEY:abc123"


def test_auth_header_requires_credentials():
    with pytest.raises(MissingCredentialsError):
        auth_header(Credentials())
    with pytest.raises(MissingCredentialsError):
        auth_header(None)


@pytest.mark.asyncio
async def test_get_json_success_builds_url_and_headers():
    client, session, limiter, sleeper = _client([FakeResp(200, {"ok": True})])
    data = await client.get_json("/activity/1/map", params={"a": 1})
    assert data == {"ok": True}
    call = session.calls[0]
    assert call["url"] == "https://api.example.test/v1/activity/1/map"
    assert call["params"] == {"a": 1}
    assert call["headers"]["Authorization"].startswith("Basic ")
    assert limiter.acquired == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_get_json_retries_429_with_exponential_backoff():
    client, session, limiter, sleeper = _client(
        [FakeResp(429), FakeResp(429), FakeResp(200, {"latlngs": []})]
    )
    data = await client.get_json("activity/2/map")
    assert data == {"latlngs": []}
    assert len(session.calls) == 3
    assert sleeper.delays == [1.0, 2.0]
    assert limiter.acquired == 3


@pytest.mark.asyncio
async def test_get_json_gives_up_after_max_retries():
    client, session, _, sleeper = _client([FakeResp(429)])
    with pytest.raises(RateLimitExceededError):
        await client.get_json("activity/3/map")
    assert len(session.calls) == 4  # first try + 3 retries
    assert sleeper.delays == [1.0, 2.0, 4.0]


@pytest.mark.asyncio
async def test_backoff_settings_are_configurable():
    client, session, _, sleeper = _client([FakeResp(429)], max_retries=1, initial_backoff=0.25)
    with pytest.raises(RateLimitExceededError):
        await client.get_json("x")
    assert len(session.calls) == 2
    assert sleeper.delays == [0.25]


@pytest.mark.asyncio
async def test_server_errors_are_not_retried():
    client, session, _, sleeper = _client([FakeResp(500, {"error": "boom"})])
    with pytest.raises(APIError) as excinfo:
        await client.get_json("activity/4/map")
    assert not isinstance(excinfo.value, RateLimitExceededError)
    assert "boom" in str(excinfo.value)
    assert len(session.calls) == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_status_specific_errors():
    client, _, _, _ = _client([FakeResp(404, {"message": "Not Found"})])
    with pytest.raises(APIResourceNotFoundError):
        await client.get_json("activity/5/map")

    client, _, _, _ = _client([FakeResp(403)])
    with pytest.raises(APIPermissionError):
        await client.get_json("activity/6/map")


@pytest.mark.asyncio
async def test_network_errors_are_not_retried():
    client, session, _, sleeper = _client([requests.ConnectionError("down")])
    with pytest.raises(APIError):
        await client.get_json("activity/7/map")
    assert len(session.calls) == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_invalid_json_raises_api_error():
    client, _, _, _ = _client([FakeResp(200, ValueError("bad json"))])
    with pytest.raises(APIError):
        await client.get_json("activity/8/map")


@pytest.mark.asyncio
async def test_missing_credentials_raise_before_any_request():
    client, session, limiter, _ = _client([FakeResp(200)], credentials=Credentials())
    with pytest.raises(MissingCredentialsError):
        await client.get_json("activity/9/map")
    assert session.calls == []
    assert limiter.acquired == 0


def test_classify_response_status_actions():
    assert classify_response_status(FakeResp(200), "ctx", attempt=1, backoff=1.0, can_retry=True) == ("ok", None)
    assert classify_response_status(FakeResp(429), "ctx", attempt=1, backoff=1.0, can_retry=True) == ("retry", None)
    assert classify_response_status(FakeResp(429), "ctx", attempt=4, backoff=8.0, can_retry=False) == ("raise", None)
    action, error = classify_response_status(FakeResp(502), "ctx", attempt=1, backoff=1.0, can_retry=True)
    assert action == "raise"
    assert isinstance(error, APIError)


def test_extract_error_combines_fields():
    resp = FakeResp(400, {"error": "invalid", "message": "bad id", "status": 400})
    assert extract_error(resp) == "invalid | bad id | 400"
    assert extract_error(None) is None


@pytest.mark.asyncio
async def test_failed_responses_are_closed_before_retry_or_raise():
    throttled = FakeResp(429)
    ok = FakeResp(200, {"latlngs": []})
    client, _, _, _ = _client([throttled, ok])
    await client.get_json("activity/10/map")
    assert throttled.closed is True
    assert ok.closed is False

    failed = FakeResp(500, {"error": "boom"})
    client, _, _, _ = _client([failed])
    with pytest.raises(APIError):
        await client.get_json("activity/11/map")
    assert failed.closed is True
