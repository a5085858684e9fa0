"""Boundary with the peer-connection engine.

The engine itself (handshakes, listener selection, proxying) lives outside
this package. Anything that can report connected peers implements
PeerEventSource; the enricher registers its callbacks on it.
"""
from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, TextIO

from peercensus.models import PeerEvent

logger = logging.getLogger(__name__)

PeerInfoCallback = Callable[[PeerEvent], object]
PeerHealthyCallback = Callable[[str], bool]


class PeerEventSource(ABC):
    """Something that reports connected peers and asks whether to keep them."""

    def __init__(self) -> None:
        self._on_peer_info: PeerInfoCallback | None = None
        self._on_peer_healthy: PeerHealthyCallback | None = None

    def set_on_peer_info(self, callback: PeerInfoCallback) -> None:
        self._on_peer_info = callback

    def set_on_peer_healthy(self, callback: PeerHealthyCallback) -> None:
        self._on_peer_healthy = callback

    def emit(self, event: PeerEvent) -> bool:
        """Deliver one event. Returns whether the peer should be kept."""
        if self._on_peer_info is not None:
            self._on_peer_info(event)
        if self._on_peer_healthy is not None:
            return bool(self._on_peer_healthy(event.identifier))
        return True

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...


def event_from_dict(data: dict) -> PeerEvent:
    """Build a PeerEvent from a decoded JSON object. Raises on bad input."""
    identifier = data["identifier"]
    user_agent = data.get("user_agent", "")
    if not isinstance(identifier, str) or not isinstance(user_agent, str):
        raise TypeError("identifier and user_agent must be strings")
    return PeerEvent(
        identifier=identifier,
        capabilities=int(data.get("capabilities", 0)),
        user_agent=user_agent,
        protocol_version=int(data.get("protocol_version", 0)),
        base_fee=int(data.get("base_fee", 0)),
        total_difficulty=int(data.get("total_difficulty", 0)),
        inbound=bool(data.get("inbound", False)),
    )


class JsonLinesPeerSource(PeerEventSource):
    """Reads peer events, one JSON object per line, on a background thread."""

    def __init__(self, stream: TextIO,
                 on_finished: Callable[[], object] | None = None) -> None:
        super().__init__()
        self._stream = stream
        self._on_finished = on_finished
        self._stopping = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        self._thread = threading.Thread(
            target=self._run, name="peer-events", daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stopping.set()

    def join(self, timeout: float | None = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    @property
    def finished(self) -> bool:
        return self._thread is not None and not self._thread.is_alive()

    def _run(self) -> None:
        for line in self._stream:
            if self._stopping.is_set():
                break
            line = line.strip()
            if not line:
                continue
            try:
                event = event_from_dict(json.loads(line))
            except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
                logger.debug("Skipping malformed peer event: %s", e)
                continue
            self.emit(event)
        if self._on_finished is not None:
            self._on_finished()
