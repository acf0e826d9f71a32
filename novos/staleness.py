"""Incremental build bookkeeping for novos.

A single timestamp records when the previous build finished. An item's
output is regenerated when its source changed after that moment or when the
output file is missing.
"""

from __future__ import annotations

import threading
import time
from pathlib import Path


class BuildClock:
    """Lock-guarded cell holding the end time of the previous build.

    The cell starts at the epoch, so a first build treats every item as
    stale. It is read once when a build starts and written once when it
    ends; both points take the lock because serve mode shares one clock
    between the initial build and every rebuild.
    """

    def __init__(self, last_build: float = 0.0):
        self._lock = threading.Lock()
        self._last_build = last_build

    def read(self) -> float:
        with self._lock:
            return self._last_build

    def mark(self, now: float | None = None) -> float:
        """Record the end of a build.

        Args:
            now: Timestamp to store; defaults to the current time.

        Returns:
            The stored timestamp.
        """
        stamp = time.time() if now is None else now
        with self._lock:
            self._last_build = stamp
        return stamp


def is_stale(mtime: float, dest: Path, last_build: float) -> bool:
    """Return True when the output at ``dest`` must be (re)written.

    Absence of the destination always forces a write, whatever the
    timestamps say.
    """
    return mtime > last_build or not dest.exists()
