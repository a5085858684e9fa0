"""Tests for the click entry point."""
import json
import os
import sys

from click.testing import CliRunner

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from peercensus import __version__
from peercensus import cli as cli_module
from peercensus.cli import cli
from peercensus.models import Geolocation


# ── Helpers ──────────────────────────────────────────────────────────


def _write_events(path, events):
    with open(path, "w", encoding="utf-8") as f:
        for event in events:
            f.write(json.dumps(event) + "\n")


def _hidden_peer(name, agent="MWC Pay 1.0.0"):
    return {"identifier": name, "capabilities": 3, "user_agent": agent,
            "base_fee": 1000000, "inbound": False}


# ── Tests ────────────────────────────────────────────────────────────


def test_version():
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_run_collects_events_and_discards_stale_log(tmp_path, monkeypatch):
    monkeypatch.delenv("PEERCENSUS_ACCESS_TOKEN", raising=False)
    events = tmp_path / "events.jsonl"
    log_file = tmp_path / "peers.json"
    log_file.write_text('[\n{"address":"left over from a crash"}', encoding="utf-8")
    _write_events(events, [_hidden_peer("one.onion"), _hidden_peer("two.onion", "bad")])

    result = CliRunner().invoke(cli, [
        "run", "--no-archive", "--stop-at-eof",
        "--events", str(events),
        "--log-file", str(log_file),
        "--geo-db", str(tmp_path / "absent.mmdb"),
    ])

    assert result.exit_code == 0, result.output
    assert "Never uploading" in result.output
    content = log_file.read_text(encoding="utf-8")
    assert "left over" not in content
    records = json.loads(content + "\n]")
    assert len(records) == 2
    assert records[1]["user_agent"] == "Unknown"
    assert all(r["address"].endswith(".onion") for r in records)
    assert "one.onion" not in content


def test_run_drops_events_when_geo_db_missing(tmp_path, monkeypatch):
    monkeypatch.delenv("PEERCENSUS_ACCESS_TOKEN", raising=False)
    events = tmp_path / "events.jsonl"
    log_file = tmp_path / "peers.json"
    _write_events(events, [_hidden_peer("1.2.3.4:3414")])

    result = CliRunner().invoke(cli, [
        "run", "--no-archive", "--stop-at-eof",
        "--events", str(events),
        "--log-file", str(log_file),
        "--geo-db", str(tmp_path / "absent.mmdb"),
    ])

    assert result.exit_code == 0, result.output
    assert not log_file.exists()


def test_run_with_env_token_announces_archiving(tmp_path, monkeypatch):
    monkeypatch.setenv("PEERCENSUS_ACCESS_TOKEN", "tok")
    events = tmp_path / "events.jsonl"
    _write_events(events, [])

    result = CliRunner().invoke(cli, [
        "run", "--stop-at-eof", "--events", str(events),
        "--log-file", str(tmp_path / "peers.json"),
    ])

    assert result.exit_code == 0, result.output
    assert "Using provided access token" in result.output


def test_unremovable_log_is_fatal(tmp_path, monkeypatch):
    monkeypatch.delenv("PEERCENSUS_ACCESS_TOKEN", raising=False)
    log_dir = tmp_path / "peers.json"
    log_dir.mkdir()
    events = tmp_path / "events.jsonl"
    _write_events(events, [])

    result = CliRunner().invoke(cli, [
        "run", "--no-archive", "--stop-at-eof",
        "--events", str(events), "--log-file", str(log_dir),
    ])

    assert result.exit_code == 1
    assert "Deleting recent peers JSON file failed" in result.output


def test_aborted_token_prompt_exits(tmp_path, monkeypatch):
    monkeypatch.delenv("PEERCENSUS_ACCESS_TOKEN", raising=False)
    events = tmp_path / "events.jsonl"
    _write_events(events, [])

    # CliRunner's stdin is empty, so the hidden prompt hits EOF
    result = CliRunner().invoke(cli, [
        "run", "--stop-at-eof", "--events", str(events),
        "--log-file", str(tmp_path / "peers.json"),
    ], input="")

    assert result.exit_code == 1
    assert "Getting access token failed" in result.output


def test_bad_interval_env_is_usage_error(monkeypatch):
    monkeypatch.setenv("PEERCENSUS_INTERVAL_HOURS", "weekly")
    result = CliRunner().invoke(cli, ["locate", "peer.onion"])
    assert result.exit_code == 2
    assert "PEERCENSUS_INTERVAL_HOURS" in result.output


def test_locate_hidden_service_needs_no_database(tmp_path):
    result = CliRunner().invoke(cli, [
        "locate", "peer.onion", "--geo-db", str(tmp_path / "absent.mmdb"),
    ])
    assert result.exit_code == 0
    assert "no geolocation" in result.output


def test_locate_missing_database_fails(tmp_path):
    result = CliRunner().invoke(cli, [
        "locate", "1.2.3.4:3414", "--geo-db", str(tmp_path / "absent.mmdb"),
    ])
    assert result.exit_code == 1
    assert "Opening the IP geolocate database failed" in result.output


def test_locate_renders_resolved_fields(monkeypatch):
    class FixedLocator:
        def __init__(self, path):
            self.path = path

        def resolve(self, address):
            return Geolocation(continent="Europe", country="Germany",
                               longitude=10.0, latitude=51.0)

    monkeypatch.setattr(cli_module, "GeoLocator", FixedLocator)
    result = CliRunner().invoke(cli, ["locate", "[2001:db8::1]:3414"])

    assert result.exit_code == 0, result.output
    assert "Germany" in result.output
    assert "51.000000" in result.output
