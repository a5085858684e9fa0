"""Peer census: geolocated peer telemetry, published to a git history."""

__version__ = "0.4.0"
