"""Tests for settings resolution."""
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from peercensus import config
from peercensus.config import Settings


_VARS = (
    "PEERCENSUS_GEO_DATABASE", "PEERCENSUS_LOG_FILE", "PEERCENSUS_REPO_DIR",
    "PEERCENSUS_REMOTE", "PEERCENSUS_BRANCH", "PEERCENSUS_INTERVAL_HOURS",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    s = Settings.from_env()
    assert s.geo_database == "./ip_geolocate_database.mmdb"
    assert s.log_file == "./peers.json"
    assert s.remote == "origin"
    assert s.refspec == "refs/heads/master"
    assert s.archive_interval_seconds == 168 * 3600
    assert s.tick_seconds == 1.0
    assert s.push_timeout_seconds is None


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("PEERCENSUS_LOG_FILE", "/data/peers.json")
    monkeypatch.setenv("PEERCENSUS_BRANCH", "refs/heads/census")
    monkeypatch.setenv("PEERCENSUS_INTERVAL_HOURS", "0.5")
    s = Settings.from_env()
    assert s.log_file == "/data/peers.json"
    assert s.refspec == "refs/heads/census"
    assert s.archive_interval_seconds == 1800


@pytest.mark.parametrize("value", ["weekly", "0", "-3"])
def test_bad_interval_rejected(monkeypatch, value):
    monkeypatch.setenv("PEERCENSUS_INTERVAL_HOURS", value)
    with pytest.raises(ValueError, match="PEERCENSUS_INTERVAL_HOURS"):
        Settings.from_env()


def test_coordinate_bounds():
    assert (config.MIN_LONGITUDE, config.MAX_LONGITUDE) == (-180.0, 180.0)
    assert (config.MIN_LATITUDE, config.MAX_LATITUDE) == (-90.0, 90.0)
