"""Development server for Postpress.

Serves the built site with live reload for local authoring:
- Serves the output directory over HTTP, one thread per request.
- Holds ``/_reload`` connections open as server-sent event streams.
- Watches the source folders, rebuilds on change and tells every
  connected browser to reload.

The server is idle between changes. A change runs one rebuild on the
watcher thread; requests keep being served from the previous output in
the meantime. A failed rebuild is logged and the stale output stays up
until the next change.

Key classes:
- DevServer: Main class for running the development server.
- ReloadBroadcaster: Lock-guarded registry of per-client reload channels.
- _ReloadHandler: HTTP request handler serving files and the event stream.
- _ChangeHandler: File system event handler for triggering rebuilds.
"""

from __future__ import annotations

import functools
import logging
import queue
import threading
import time
from collections.abc import Iterable
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from urllib.parse import urlsplit

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from .build import BuildError
from .protocols import Rebuilder
from .templates import RELOAD_PATH

logger = logging.getLogger(__name__)

RELOAD_EVENT = "reload"
KEEPALIVE_SECONDS = 15.0
SETTLE_SECONDS = 0.1
MAX_SETTLE_ROUNDS = 20

_REBUILD_EVENTS = {
    EVENT_TYPE_CREATED,
    EVENT_TYPE_DELETED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
}


class ReloadBroadcaster:
    """Registry of connected live-reload clients.

    Each client owns a one-slot queue. Broadcasting never blocks: a client
    whose slot is already full simply keeps its pending reload.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: set[queue.Queue] = set()

    def subscribe(self) -> queue.Queue:
        """Register a new client and return its notification channel."""
        channel: queue.Queue = queue.Queue(maxsize=1)
        with self._lock:
            self._clients.add(channel)
        return channel

    def unsubscribe(self, channel: queue.Queue) -> None:
        with self._lock:
            self._clients.discard(channel)

    def broadcast(self, event: str = RELOAD_EVENT) -> int:
        """Send an event to every connected client.

        Returns:
            Number of clients that were registered at broadcast time.
        """
        with self._lock:
            for channel in self._clients:
                try:
                    channel.put_nowait(event)
                except queue.Full:
                    pass
            return len(self._clients)

    def __len__(self) -> int:
        with self._lock:
            return len(self._clients)


class _ReloadHandler(SimpleHTTPRequestHandler):
    """Serves output files plus the live-reload event stream.

    DevServer.create_http_server binds the attributes below on a
    per-server subclass.

    Attributes:
        broadcaster: Registry the event stream subscribes to.
        stop_event: Set when the server shuts down; ends open streams.
        keepalive_interval: Seconds between keep-alive comments, which
            also detect disconnected clients.
    """

    broadcaster: ReloadBroadcaster | None = None
    stop_event: threading.Event | None = None
    keepalive_interval: float = KEEPALIVE_SECONDS

    def end_headers(self):
        self.send_header("Cache-Control", "no-cache, no-store, must-revalidate")
        super().end_headers()

    def do_GET(self):
        if urlsplit(self.path).path == RELOAD_PATH:
            self._stream_events()
            return
        super().do_GET()

    def _stream_events(self) -> None:
        channel = self.broadcaster.subscribe()
        try:
            self.send_response(200)
            self.send_header("Content-Type", "text/event-stream")
            self.send_header("Connection", "keep-alive")
            self.end_headers()
            self.wfile.flush()
            while not self.stop_event.is_set():
                try:
                    event = channel.get(timeout=self.keepalive_interval)
                except queue.Empty:
                    self.wfile.write(b": keepalive\n\n")
                else:
                    self.wfile.write(f"data: {event}\n\n".encode("utf-8"))
                self.wfile.flush()
        except ConnectionError:
            logger.debug("Live reload client %s disconnected", self.client_address[0])
        finally:
            self.broadcaster.unsubscribe(channel)
            self.close_connection = True

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)


class DevServer:
    """Development server with live reload functionality.

    Attributes:
        builder: Object whose ``rebuild()`` builds the site.
        output_dir: Directory served over HTTP.
        watch_dirs: Source directories watched for changes.
        ignore_dirs: Directories whose changes never trigger a rebuild.
        host: Bind address ("" for all interfaces).
        port: HTTP port.
        broadcaster: Registry of connected live-reload clients.
    """

    def __init__(
        self,
        builder: Rebuilder,
        output_dir: Path,
        watch_dirs: Iterable[Path],
        host: str = "",
        port: int = 8080,
        ignore_dirs: Iterable[Path] = (),
        keepalive_interval: float = KEEPALIVE_SECONDS,
        settle_seconds: float = SETTLE_SECONDS,
    ):
        self.builder = builder
        self.output_dir = Path(output_dir)
        self.watch_dirs = [Path(d) for d in watch_dirs]
        self.ignore_dirs = [self.output_dir, *(Path(d) for d in ignore_dirs)]
        self.host = host
        self.port = port
        self.keepalive_interval = keepalive_interval
        self.settle_seconds = settle_seconds
        self.broadcaster = ReloadBroadcaster()
        self._stop_event = threading.Event()
        self._rebuild_lock = threading.Lock()
        self._last_signature: tuple | None = None
        self._observer: Observer | None = None
        self._httpd: ThreadingHTTPServer | None = None

    def start(self) -> None:  # pragma: no cover - integration path
        """Build once, then serve and watch until interrupted.

        Raises:
            BuildError: If the initial build fails; nothing is served.
        """
        logger.info("Running initial build...")
        self.builder.rebuild()
        self._last_signature = self._compute_signature()
        self._httpd = self.create_http_server()
        self._start_watcher()
        host, port = self._httpd.server_address[:2]
        logger.info("Serving %s at http://%s:%d", self.output_dir, host or "localhost", port)
        logger.info("Watching for changes...")
        try:
            self._httpd.serve_forever()
        except KeyboardInterrupt:
            logger.info("Stopping dev server")
        finally:
            self._close()

    def stop(self) -> None:
        """Stop a server started with start() from another thread."""
        if self._httpd is not None:
            self._httpd.shutdown()

    def _close(self) -> None:
        self._stop_event.set()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None
        if self._httpd is not None:
            self._httpd.server_close()

    def create_http_server(self) -> ThreadingHTTPServer:
        """Create (but do not start) the HTTP server for the output directory."""
        handler_cls = type(
            "_BoundReloadHandler",
            (_ReloadHandler,),
            {
                "broadcaster": self.broadcaster,
                "stop_event": self._stop_event,
                "keepalive_interval": self.keepalive_interval,
            },
        )
        handler = functools.partial(handler_cls, directory=str(self.output_dir))
        httpd = ThreadingHTTPServer((self.host, self.port), handler)
        httpd.daemon_threads = True
        return httpd

    def _start_watcher(self) -> None:
        handler = _ChangeHandler(self)
        observer = Observer()
        for folder in self.watch_dirs:
            if not folder.is_dir():
                logger.warning("Not watching %s: directory does not exist", folder)
                continue
            observer.schedule(handler, str(folder), recursive=True)
        observer.start()
        self._observer = observer

    def rebuild(self) -> bool:
        """Rebuild after a change and notify clients.

        Waits until the watched files stop changing, then compares their
        signature with the last build. A save that arrives as several
        events (truncate, then write) therefore rebuilds once.

        Returns:
            True if a rebuild ran and succeeded.
        """
        with self._rebuild_lock:
            signature = self._settled_signature()
            if signature == self._last_signature:
                logger.debug("No content change; skipping rebuild")
                return False
            self._last_signature = signature
            logger.info("Change detected; rebuilding...")
            try:
                self.builder.rebuild()
            except BuildError as exc:
                logger.error("Build error: %s", exc)
                return False
            notified = self.broadcaster.broadcast()
            logger.info("Rebuild complete, reloading %d browser(s)", notified)
            return True

    def is_ignored(self, path: Path) -> bool:
        for ignored in self.ignore_dirs:
            try:
                path.relative_to(ignored)
                return True
            except ValueError:
                pass
        return False

    def _settled_signature(self) -> tuple:
        signature = self._compute_signature()
        for _ in range(MAX_SETTLE_ROUNDS):
            time.sleep(self.settle_seconds)
            current = self._compute_signature()
            if current == signature:
                break
            signature = current
        return signature

    def _compute_signature(self) -> tuple:
        entries: list[tuple] = []
        for root in self.watch_dirs:
            if not root.is_dir():
                continue
            for path in sorted(root.rglob("*")):
                if path.is_dir():
                    continue
                try:
                    stat = path.stat()
                except OSError:
                    continue
                entries.append((str(path), stat.st_mtime_ns, stat.st_size))
        return tuple(entries)


class _ChangeHandler(FileSystemEventHandler):
    def __init__(self, server: DevServer):
        super().__init__()
        self.server = server

    def on_any_event(self, event):
        if event.is_directory or event.event_type not in _REBUILD_EVENTS:
            return
        path = Path(event.src_path)
        if self.server.is_ignored(path):
            return
        self.server.rebuild()
