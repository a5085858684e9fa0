from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum


class LogState(str, Enum):
    ABSENT = "absent"
    OPEN = "open"
    CLOSED = "closed"


@dataclass(frozen=True)
class PeerEvent:
    """One peer-connected notification from the node engine.

    identifier is a transport address (``1.2.3.4:3414``, ``[::1]:3414``)
    or a hidden-service name (``xyz.onion``).
    """
    identifier: str
    capabilities: int
    user_agent: str
    protocol_version: int = 0
    base_fee: int = 0
    total_difficulty: int = 0
    inbound: bool = False

    @property
    def direction(self) -> str:
        return "inbound" if self.inbound else "outbound"


@dataclass(frozen=True)
class Geolocation:
    """Coarse location of an IP address. Every field may be missing.

    longitude and latitude are either both set or both None.
    """
    continent: str | None = None
    country: str | None = None
    subdivision: str | None = None
    city: str | None = None
    longitude: float | None = None
    latitude: float | None = None

    def __post_init__(self) -> None:
        if (self.longitude is None) != (self.latitude is None):
            raise ValueError("longitude and latitude must be set together")

    @property
    def is_empty(self) -> bool:
        return all(
            v is None for v in (
                self.continent, self.country, self.subdivision,
                self.city, self.longitude,
            )
        )


def _coordinate(value: float | None) -> str | None:
    return None if value is None else f"{value:.6f}"


@dataclass(frozen=True)
class TelemetryRecord:
    """One stored peer observation.

    Numbers are serialized as quoted strings and keys keep a fixed order.
    """
    address: str
    capabilities: int
    user_agent: str
    base_fee: int
    geolocation: Geolocation = Geolocation()

    def to_dict(self) -> dict:
        geo = self.geolocation
        return {
            "address": self.address,
            "capabilities": str(int(self.capabilities)),
            "user_agent": self.user_agent,
            "base_fee": str(int(self.base_fee)),
            "continent": geo.continent,
            "country": geo.country,
            "subdivision": geo.subdivision,
            "city": geo.city,
            "longitude": _coordinate(geo.longitude),
            "latitude": _coordinate(geo.latitude),
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)
