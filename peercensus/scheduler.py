"""Driver loop: runs an archive cycle every interval until shutdown."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from peercensus import config
from peercensus.credentials import AccessToken
from peercensus.telemetry.log import TelemetryLog
from peercensus.telemetry.publish import ArchivePublisher

logger = logging.getLogger(__name__)


class Scheduler:
    """Single-threaded polling loop.

    Shutdown is only observed between ticks; a cycle that has started
    always runs to completion.
    """

    def __init__(
        self,
        log: TelemetryLog,
        publisher: ArchivePublisher,
        token: AccessToken,
        interval: float = config.ARCHIVE_INTERVAL_HOURS * 3600,
        tick: float = config.TICK_SECONDS,
        shutdown: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._log = log
        self._publisher = publisher
        self._token = token
        self.interval = interval
        self.tick_seconds = tick
        self.shutdown = shutdown or threading.Event()
        self._clock = clock
        self._last_cycle = clock()
        self.cycles = 0

    @property
    def archiving_enabled(self) -> bool:
        return bool(self._token)

    def purge_stale_log(self) -> None:
        """Discard a log left by a previous run. Raises FatalStorageError."""
        self._log.purge()

    def tick(self) -> bool:
        """Run a cycle if one is due. Returns True if a cycle was attempted."""
        if not self.archiving_enabled:
            return False
        if self._clock() - self._last_cycle < self.interval:
            return False

        self._publisher.run_cycle(self._token)
        self.cycles += 1
        self._last_cycle = self._clock()
        return True

    def run(self) -> None:
        """Loop until the shutdown event is set."""
        self._last_cycle = self._clock()
        while not self.shutdown.is_set():
            self.tick()
            self.shutdown.wait(self.tick_seconds)
        logger.debug("Scheduler stopped after %d archive cycle(s)", self.cycles)
