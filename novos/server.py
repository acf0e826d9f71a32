"""Development server for novos.

Serves the built site with live reload:
- Builds once up front, with the reload script injected into every page.
- Serves the output tree over HTTP with caching disabled, answering
  directory listings and missing paths with a 404 (404.html when present).
- Runs a websocket server on the next port for reload notifications.
- Watches the project and rebuilds through a debounced coordinator.

Key classes:
- DevServer: Main class for running the development server.
- _DevRequestHandler: HTTP handler resolving clean URLs and enforcing 404s.
"""

from __future__ import annotations

import asyncio
import dataclasses
import functools
import logging
import threading
import time
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path

import websockets
from watchdog.observers import Observer

from .build import BuildResult, build_site
from .config import Config, load_config
from .livereload import ReloadChannel, reload_script
from .staleness import BuildClock
from .watch import ChangeHandler, IgnoreRules, RebuildCoordinator

logger = logging.getLogger(__name__)


def _log_publish_failure(future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.warning("Reload notification failed: %s", exc)


class _DevRequestHandler(SimpleHTTPRequestHandler):
    """HTTP request handler for the built site.

    ``/about`` is served from ``about.html`` when no such file or directory
    exists, matching the links pages and posts use in production.
    """

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def list_directory(self, path):  # pragma: no cover - exercised via send_head
        return self._serve_404()

    def _serve_404(self):
        """Serve 404.html (when present) with a 404 status."""
        error_page = Path(self.directory) / "404.html"
        if error_page.exists():
            encoded = error_page.read_bytes()
            self.send_response(404)
            self.send_header("Content-type", "text/html; charset=utf-8")
            self.send_header("Content-Length", str(len(encoded)))
            self.end_headers()
            self.wfile.write(encoded)
            return None
        self.send_error(404, "File not found")
        return None

    def send_head(self):
        path_obj = Path(self.translate_path(self.path))
        if path_obj.is_dir():
            if not (path_obj / "index.html").exists():
                return self._serve_404()
        elif not path_obj.exists():
            fallback = path_obj.with_name(path_obj.name + ".html")
            if not path_obj.name or not fallback.is_file():
                return self._serve_404()
            self.path = self.path.split("?", 1)[0].split("#", 1)[0] + ".html"
        return super().send_head()


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        project_root: Root directory of the project.
        config: Site configuration.
        http_port: Port for the HTTP server.
        ws_port: Port for websocket connections (``http_port + 1``).
        clock: Build clock shared by the initial build and every rebuild.
        channel: Reload channel the websocket handlers wait on.
    """

    def __init__(self, project_root: Path, port: int | None = None, config: Config | None = None):
        """Initialize the development server.

        Args:
            project_root: Root directory of the project.
            port: Optional override for the HTTP port.
            config: Resolved configuration; loaded from novos.yaml when omitted.
        """
        self.project_root = project_root
        self.config = config or load_config(project_root)
        self.http_port = int(port or self.config.port)
        self.ws_port = self.http_port + 1
        self.dev_script = reload_script(self.ws_port)
        self.clock = BuildClock()
        self._loop = asyncio.new_event_loop()
        self.channel: ReloadChannel | None = None
        self._ready = threading.Event()
        self._shutdown: asyncio.Event | None = None
        self._httpd: ThreadingHTTPServer | None = None
        self._observer: Observer | None = None
        self.coordinator = RebuildCoordinator(self.rebuild, self.publish)

    @property
    def output_dir(self) -> Path:
        return self.config.output_dir

    def rebuild(self) -> BuildResult:
        """Build the site with the reload script, reloading configuration.

        The HTTP server and the watcher's ignore rules are bound to the
        output directory at startup, so a changed ``output_dir`` is ignored
        (with a warning) until the server is restarted.
        """
        config = load_config(self.project_root)
        if config.output_dir != self.output_dir:
            logger.warning(
                "output_dir changed to %s; still serving %s until the server restarts",
                config.output_dir,
                self.output_dir,
            )
            config = dataclasses.replace(config, output_dir=self.output_dir)
        self.config = config
        return build_site(
            self.project_root, config=self.config, clock=self.clock, dev_script=self.dev_script
        )

    def publish(self) -> None:
        """Notify connected browsers; safe to call from any thread."""
        if self.channel is None:
            return
        future = asyncio.run_coroutine_threadsafe(self.channel.publish(), self._loop)
        future.add_done_callback(_log_publish_failure)

    def start(self) -> None:  # pragma: no cover - integration path
        build_site(
            self.project_root, config=self.config, clock=self.clock, dev_script=self.dev_script
        )
        threading.Thread(target=self._start_http, name="novos-http", daemon=True).start()
        threading.Thread(target=self._start_ws, name="novos-ws", daemon=True).start()
        self._ready.wait(timeout=5)
        self.coordinator.start()
        self._start_watcher()
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            self.stop()

    def stop(self) -> None:
        self.coordinator.stop()
        if self._observer:
            self._observer.stop()
            self._observer.join()
        if self._httpd:
            self._httpd.shutdown()
        if self._shutdown is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(self._shutdown.set)

    def _start_http(self) -> None:  # pragma: no cover - integration path
        handler = functools.partial(_DevRequestHandler, directory=str(self.output_dir))
        self._httpd = ThreadingHTTPServer(("", self.http_port), handler)
        logger.warning("Serving %s at http://localhost:%d", self.output_dir, self.http_port)
        self._httpd.serve_forever()

    def _start_ws(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._run_ws_server())
        except OSError as exc:
            logger.error("WebSocket server failed to start (port %d): %s", self.ws_port, exc)
            self._ready.set()

    async def _run_ws_server(self) -> None:
        self.channel = ReloadChannel()
        self._shutdown = asyncio.Event()
        async with websockets.serve(self.channel.serve, "0.0.0.0", self.ws_port):
            self._ready.set()
            await self._shutdown.wait()
        logger.debug("WebSocket server stopped")

    def _start_watcher(self) -> None:
        rules = IgnoreRules(self.project_root, self.output_dir)
        handler = ChangeHandler(self.coordinator, rules)
        observer = Observer()
        observer.schedule(handler, str(self.project_root), recursive=True)
        observer.start()
        self._observer = observer
