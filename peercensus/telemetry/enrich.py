"""Turn peer-connected notifications into stored telemetry records.

Hidden-service names are hashed before they are stored or logged, and
user agents outside a small allow-list are replaced by a placeholder.
Nothing raised here ever reaches the node engine's callback.
"""
from __future__ import annotations

import hashlib
import logging
import re

from peercensus import config
from peercensus.errors import GeoLookupError
from peercensus.models import PeerEvent, TelemetryRecord
from peercensus.telemetry.geolocate import GeoLocator
from peercensus.telemetry.log import TelemetryLog

logger = logging.getLogger(__name__)

_KNOWN_USER_AGENT = re.compile(config.KNOWN_USER_AGENT_PATTERN, re.ASCII)


def is_hidden_service(identifier: str) -> bool:
    return identifier.endswith(config.HIDDEN_SERVICE_SUFFIX)


def anonymize_address(identifier: str) -> str:
    """Replace a hidden-service name with a stable one-way hash."""
    if not is_hidden_service(identifier):
        return identifier
    digest = hashlib.sha256(identifier.encode("utf-8")).hexdigest()
    return digest + config.HIDDEN_SERVICE_SUFFIX


def sanitize_user_agent(user_agent: str) -> str:
    if isinstance(user_agent, str) and _KNOWN_USER_AGENT.fullmatch(user_agent):
        return user_agent
    return config.UNKNOWN_USER_AGENT


class PeerEventEnricher:
    """Geolocates peer events and appends them to the telemetry log."""

    def __init__(self, locator: GeoLocator, log: TelemetryLog) -> None:
        self._locator = locator
        self._log = log

    def attach(self, source) -> None:
        """Register this enricher's callbacks on a PeerEventSource."""
        source.set_on_peer_info(self.enrich)
        source.set_on_peer_healthy(self.is_peer_healthy)

    def build_record(self, event: PeerEvent) -> TelemetryRecord:
        # Geolocate the raw identifier; hashed names would never resolve
        geolocation = self._locator.resolve(event.identifier)
        return TelemetryRecord(
            address=anonymize_address(event.identifier),
            capabilities=event.capabilities,
            user_agent=sanitize_user_agent(event.user_agent),
            base_fee=event.base_fee,
            geolocation=geolocation,
        )

    def enrich(self, event: PeerEvent) -> TelemetryRecord | None:
        """Record a peer event. Returns the stored record, or None if dropped."""
        try:
            record = self.build_record(event)
            self._log.append(record)
        except (GeoLookupError, OSError, ValueError, TypeError) as e:
            logger.warning("Updating recent peers JSON file failed: %s", e)
            return None
        except Exception as e:  # unexpected, so keep the traceback; the engine must never see it
            logger.warning("Updating recent peers JSON file failed: %s", e, exc_info=True)
            return None

        logger.info("Detected %s peer %s", event.direction, record.address)
        return record

    def is_peer_healthy(self, identifier: str) -> bool:
        """Peers are dropped as soon as they have been counted."""
        return False
