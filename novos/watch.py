"""File watching and rebuild coordination for novos.

Filesystem events from watchdog are filtered through IgnoreRules and turned
into rebuild requests. Requests go into a bounded queue that never blocks
the watcher; a single consumer thread waits a short debounce, drains every
request that piled up meanwhile, and runs one rebuild for the whole burst.

Key classes:
- IgnoreRules: Decides which paths never trigger a rebuild.
- ChangeHandler: watchdog event handler feeding the coordinator.
- RebuildCoordinator: Debounced single-consumer rebuild loop.
"""

from __future__ import annotations

import fnmatch
import logging
import queue
import threading
import time
from collections.abc import Callable
from pathlib import Path

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)

from .build import BuildError
from .config import ConfigError

logger = logging.getLogger(__name__)

DEBOUNCE_SECONDS = 0.15
QUEUE_SIZE = 100

IGNORED_DIRS = frozenset({".git", ".hg", ".svn", "target", "node_modules", "__pycache__"})
IGNORED_SUFFIXES = (".swp", ".swo", ".swx", ".tmp", ".bak")
WATCHED_EVENTS = frozenset({EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED, EVENT_TYPE_MOVED})


def _read_gitignore(path: Path) -> list[str]:
    if not path.is_file():
        return []
    patterns = []
    for line in path.read_text(encoding="utf-8", errors="replace").splitlines():
        entry = line.strip()
        # negations and comments are not supported
        if not entry or entry.startswith(("#", "!")):
            continue
        entry = entry.strip("/")
        if entry:
            patterns.append(entry)
    return patterns


class IgnoreRules:
    """Paths that must not trigger a rebuild.

    Attributes:
        project_root: Watched project directory.
        output_dir: Build output directory; everything under it is ignored.
        patterns: Simple entries read from the project's ``.gitignore``.
    """

    def __init__(self, project_root: Path, output_dir: Path, patterns: list[str] | None = None):
        self.project_root = project_root.resolve()
        self.output_dir = output_dir.resolve()
        if patterns is None:
            patterns = _read_gitignore(project_root / ".gitignore")
        self.patterns = patterns

    @staticmethod
    def is_scratch_name(name: str) -> bool:
        """Editor backups, swap files and hidden files."""
        return (
            name.startswith((".", "#"))
            or name.endswith("~")
            or name.endswith(IGNORED_SUFFIXES)
        )

    def _matches_pattern(self, parts: tuple[str, ...]) -> bool:
        rel = "/".join(parts)
        for pattern in self.patterns:
            if "/" in pattern:
                if fnmatch.fnmatch(rel, pattern) or rel.startswith(pattern + "/"):
                    return True
            elif any(fnmatch.fnmatch(part, pattern) for part in parts):
                return True
        return False

    def is_ignored(self, path: str | Path) -> bool:
        path = Path(path).resolve()
        if path == self.output_dir or self.output_dir in path.parents:
            return True
        try:
            parts = path.relative_to(self.project_root).parts
        except ValueError:
            parts = (path.name,)
        if not parts:
            return False
        if any(part in IGNORED_DIRS or self.is_scratch_name(part) for part in parts):
            return True
        return self._matches_pattern(parts)


class RebuildCoordinator:
    """Collapses bursts of change notifications into single rebuilds.

    Attributes:
        debounce: Seconds to wait after the first request of a burst.
    """

    def __init__(
        self,
        rebuild: Callable[[], object],
        publish: Callable[[], None],
        debounce: float = DEBOUNCE_SECONDS,
        maxsize: int = QUEUE_SIZE,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the coordinator.

        Args:
            rebuild: Runs one build; raising means the build was aborted.
            publish: Notifies browsers after a build that was not aborted.
            debounce: Quiet period before a rebuild starts.
            maxsize: Capacity of the request queue.
            sleep: Sleep function, replaceable in tests.
        """
        self._rebuild = rebuild
        self._publish = publish
        self.debounce = debounce
        self._sleep = sleep
        self._queue: queue.Queue[None] = queue.Queue(maxsize)
        self._stopped = threading.Event()
        self._thread: threading.Thread | None = None

    def trigger(self) -> bool:
        """Request a rebuild without blocking.

        Returns:
            False when the queue is full and the request was dropped; a
            rebuild is already pending in that case.
        """
        try:
            self._queue.put_nowait(None)
        except queue.Full:
            return False
        return True

    def pending(self) -> int:
        return self._queue.qsize()

    def _drain(self) -> int:
        drained = 0
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return drained
            drained += 1

    def run_once(self, timeout: float | None = None) -> bool:
        """Wait for a request, debounce, and rebuild once.

        Returns:
            True if a rebuild ran and was published.
        """
        try:
            self._queue.get(timeout=timeout)
        except queue.Empty:
            return False
        self._sleep(self.debounce)
        collapsed = self._drain()
        logger.info("Change detected; rebuilding (%d events collapsed)", collapsed + 1)
        try:
            self._rebuild()
        except (BuildError, ConfigError) as exc:
            logger.error("Rebuild failed: %s", exc)
            return False
        except Exception:
            logger.exception("Rebuild failed")
            return False
        self._publish()
        return True

    def run(self, poll: float = 0.5) -> None:
        while not self._stopped.is_set():
            self.run_once(timeout=poll)

    def start(self) -> threading.Thread:
        self._stopped.clear()
        thread = threading.Thread(target=self.run, name="novos-rebuild", daemon=True)
        thread.start()
        self._thread = thread
        return thread

    def stop(self) -> None:
        self._stopped.set()


class ChangeHandler(FileSystemEventHandler):
    """Forwards relevant filesystem events to a RebuildCoordinator."""

    def __init__(self, coordinator: RebuildCoordinator, rules: IgnoreRules):
        super().__init__()
        self.coordinator = coordinator
        self.rules = rules

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type not in WATCHED_EVENTS:
            return
        if event.is_directory and event.event_type != EVENT_TYPE_MOVED:
            return
        paths = [event.src_path]
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.append(dest)
        if all(self.rules.is_ignored(p) for p in paths):
            return
        logger.debug("%s: %s", event.event_type, event.src_path)
        self.coordinator.trigger()
