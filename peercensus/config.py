"""Shared configuration for the peer census collector."""
from __future__ import annotations

import os
from dataclasses import dataclass

# Default file locations (relative to the working directory)
GEO_DATABASE_PATH = "./ip_geolocate_database.mmdb"
LOG_FILE_PATH = "./peers.json"
REPO_DIR = "."

# Publishing target
GIT_REMOTE = "origin"
GIT_REFSPEC = "refs/heads/master"
GIT_UPLOADER_NAME = "Peer Census Automatic Updater"
GIT_UPLOADER_EMAIL = "unknown"

# Archive cadence
ARCHIVE_INTERVAL_HOURS = 168
TICK_SECONDS = 1.0
PUSH_TIMEOUT_SECONDS = None   # unbounded: a hung push stalls appends until it returns

# Coordinate bounds
MIN_LONGITUDE = -180.0
MAX_LONGITUDE = 180.0
MIN_LATITUDE = -90.0
MAX_LATITUDE = 90.0

# Peer identity
HIDDEN_SERVICE_SUFFIX = ".onion"
UNKNOWN_USER_AGENT = "Unknown"
KNOWN_USER_AGENT_PATTERN = (
    r"(?:MW/MWC|MWC Validation Node|MWC Pay|MWC Node Map) "
    r"\d{1,3}\.\d{1,3}\.\d{1,3}"
)

ACCESS_TOKEN_ENV = "PEERCENSUS_ACCESS_TOKEN"


def _env_str(name: str, default: str) -> str:
    value = os.environ.get(name, "").strip()
    return value or default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass
class Settings:
    """Resolved runtime settings. CLI options override these defaults."""
    geo_database: str = GEO_DATABASE_PATH
    log_file: str = LOG_FILE_PATH
    repo_dir: str = REPO_DIR
    remote: str = GIT_REMOTE
    refspec: str = GIT_REFSPEC
    archive_interval_seconds: float = ARCHIVE_INTERVAL_HOURS * 3600
    tick_seconds: float = TICK_SECONDS
    push_timeout_seconds: float | None = PUSH_TIMEOUT_SECONDS

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from PEERCENSUS_* environment variables."""
        hours = _env_float("PEERCENSUS_INTERVAL_HOURS", ARCHIVE_INTERVAL_HOURS)
        if hours <= 0:
            raise ValueError("PEERCENSUS_INTERVAL_HOURS must be positive")
        return cls(
            geo_database=_env_str("PEERCENSUS_GEO_DATABASE", GEO_DATABASE_PATH),
            log_file=_env_str("PEERCENSUS_LOG_FILE", LOG_FILE_PATH),
            repo_dir=_env_str("PEERCENSUS_REPO_DIR", REPO_DIR),
            remote=_env_str("PEERCENSUS_REMOTE", GIT_REMOTE),
            refspec=_env_str("PEERCENSUS_BRANCH", GIT_REFSPEC),
            archive_interval_seconds=hours * 3600,
        )
