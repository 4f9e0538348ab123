"""Tests for the route-sync command line entry point."""

from __future__ import annotations

import json

from route_sync import main as cli
from route_sync.sync.state import SYNC_STATE

from conftest import as_payload, make_line


def test_demo_command_syncs_fixtures(tmp_path, capsys):
    route = make_line(47.0, 8.0, 200, step_deg=0.0001)
    fixtures = tmp_path / "demo.json"
    fixtures.write_text(
        json.dumps({"a": as_payload(route), "b": as_payload(route), "c": as_payload(route[:2])}),
        encoding="utf-8",
    )

    code = cli.main(["--cache", "", "demo", "--fixtures", str(fixtures)])

    out = capsys.readouterr().out
    assert code == 0
    assert "Outcome: synced" in out
    assert "Synced (2): a, b" in out
    assert "Shared routes (1):" in out
    assert SYNC_STATE.progress.status == "complete"


def test_demo_command_writes_cache(tmp_path):
    fixtures = tmp_path / "demo.json"
    fixtures.write_text(json.dumps({"a": as_payload(make_line(1.0, 1.0, 10))}), encoding="utf-8")
    cache = tmp_path / "cache.json"
    assert cli.main(["--cache", str(cache), "demo", "--fixtures", str(fixtures), "a"]) == 0
    assert "a" in json.loads(cache.read_text(encoding="utf-8"))["signatures"]


def test_demo_command_missing_fixture_file(tmp_path):
    assert cli.main(["--cache", "", "demo", "--fixtures", str(tmp_path / "nope.json")]) == 1


def test_live_command_without_credentials(monkeypatch):
    monkeypatch.setattr("route_sync.api_client.client.INTERVALS_API_KEY", "")
    monkeypatch.setattr("route_sync.api_client.client.INTERVALS_ACCESS_TOKEN", "")
    assert cli.main(["--cache", "", "live", "123"]) == 2
