"""Append-only JSON-array log of peer observations.

The file moves through three states:

    ABSENT --append--> OPEN --append--> OPEN --finalize--> CLOSED --purge--> ABSENT

An OPEN file is an unterminated JSON array, so appends never rewrite
earlier bytes. CLOSED only exists inside an archive cycle, which holds the
log's lock from finalize until purge.
"""
from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from typing import Iterator

from peercensus import config
from peercensus.errors import FatalStorageError
from peercensus.models import LogState, TelemetryRecord

logger = logging.getLogger(__name__)


class TelemetryLog:
    """Owns the log file and the single lock serializing every mutation."""

    def __init__(self, path: str = config.LOG_FILE_PATH) -> None:
        self.path = path
        # Reentrant so an archive cycle can finalize and purge while holding it
        self._lock = threading.RLock()

    @contextmanager
    def exclusive(self) -> Iterator[str]:
        """Hold the log lock; appends block until the block exits."""
        with self._lock:
            yield self.path

    @property
    def state(self) -> LogState:
        with self._lock:
            try:
                with open(self.path, "rb") as f:
                    f.seek(0, os.SEEK_END)
                    if f.tell() == 0:
                        return LogState.ABSENT
                    f.seek(-1, os.SEEK_END)
                    last = f.read(1)
            except FileNotFoundError:
                return LogState.ABSENT
        return LogState.CLOSED if last == b"]" else LogState.OPEN

    def _started(self) -> bool:
        # an empty file left by a failed first write frames like a missing one
        try:
            return os.path.getsize(self.path) > 0
        except FileNotFoundError:
            return False

    def append(self, record: TelemetryRecord) -> None:
        """Append one record. Raises OSError if the file can't be written."""
        line = record.to_json()
        with self._lock:
            started = self._started()
            with open(self.path, "a", encoding="utf-8", newline="") as f:
                f.write(("," if started else "[") + "\n" + line)

    def finalize(self) -> None:
        """Terminate the array, creating an empty one if nothing was logged."""
        with self._lock:
            started = self._started()
            with open(self.path, "a", encoding="utf-8", newline="") as f:
                f.write(("" if started else "[") + "\n]")

    def purge(self) -> None:
        """Delete the file. Raises FatalStorageError if deletion fails."""
        with self._lock:
            try:
                os.remove(self.path)
            except FileNotFoundError:
                return
            except OSError as e:
                logger.error("Deleting recent peers JSON file failed: %s", e)
                raise FatalStorageError(
                    f"Deleting recent peers JSON file failed: {e}"
                ) from e
