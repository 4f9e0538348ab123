"""Tests for the fixture and API trace sources."""

from __future__ import annotations

import json

import pytest

from route_sync.errors import APIError, MissingCredentialsError
from route_sync.models import Activity, Credentials
from route_sync.sync import ApiTraceSource, FixtureTraceSource

from conftest import as_payload, make_line


class FakeClient:
    def __init__(self, payloads, credentials=None):
        self.payloads = payloads
        self.credentials = credentials or Credentials(api_key="k")
        self.calls = 0

    async def get_json(self, path, *, params=None, context="request"):
        self.calls += 1
        value = self.payloads[path]
        if isinstance(value, Exception):
            raise value
        return value


def test_fixture_file_loading(tmp_path):
    path = tmp_path / "fixtures.json"
    path.write_text(json.dumps({"1": as_payload(make_line(1.0, 1.0, 4)), "2": None}), encoding="utf-8")
    source = FixtureTraceSource.from_file(path)
    assert source.activity_ids() == ["1", "2"]


def test_fixture_file_must_be_object(tmp_path):
    path = tmp_path / "fixtures.json"
    path.write_text("[]", encoding="utf-8")
    with pytest.raises(ValueError):
        FixtureTraceSource.from_file(path)
    with pytest.raises(OSError):
        FixtureTraceSource.from_file(tmp_path / "missing.json")


@pytest.mark.asyncio
async def test_fixture_source_reports_progress():
    line = make_line(1.0, 1.0, 4)
    source = FixtureTraceSource({"a": as_payload(line)})
    progress = []
    traces = await source.fetch_traces(
        [Activity("a"), Activity("b")], on_progress=lambda done, total: progress.append((done, total))
    )
    assert traces == {"a": line, "b": None}
    assert progress == [(2, 2)]


@pytest.mark.asyncio
async def test_api_source_maps_failures_to_none():
    client = FakeClient(
        {
            "activity/a/map": as_payload(make_line(1.0, 1.0, 4)),
            "activity/b/map": APIError("gone"),
        }
    )
    source = ApiTraceSource(client)
    traces = await source.fetch_traces([Activity("a"), Activity("b")])
    assert len(traces["a"]) == 4
    assert traces["b"] is None


@pytest.mark.asyncio
async def test_api_source_requires_credentials_up_front():
    client = FakeClient({}, credentials=Credentials())
    source = ApiTraceSource(client)
    with pytest.raises(MissingCredentialsError):
        await source.fetch_traces([Activity("a")])
    assert client.calls == 0
