"""Published variables for the pull path.

Variables are registered by name and rendered as JSON on every read, so a
scraper always sees a fresh sample.  :func:`serve` exposes every published
variable as a single JSON object at ``/debug/vars``, the layout read by
Telegraf's ``influxdb`` input plugin.
"""

from __future__ import annotations

import json
import logging
import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable, Iterator

from ..collector.sampler import Collector

logger = logging.getLogger(__name__)


class Func:
    """A variable whose value is computed by calling *fn* on every read."""

    def __init__(self, fn: Callable[[], Any]) -> None:
        self._fn = fn

    def value(self) -> Any:
        return self._fn()

    def __str__(self) -> str:
        return json.dumps(self.value())


_vars: dict[str, Func] = {}
_vars_lock = threading.Lock()


def publish(name: str, var: Func) -> None:
    """Register *var* under *name*.  Names can only be published once."""
    with _vars_lock:
        if name in _vars:
            raise ValueError(f"reuse of published variable name {name!r}")
        _vars[name] = var


def get(name: str) -> Func | None:
    with _vars_lock:
        return _vars.get(name)


def items() -> Iterator[tuple[str, Func]]:
    """Yield published variables sorted by name."""
    with _vars_lock:
        snapshot = sorted(_vars.items())
    yield from snapshot


def unpublish(name: str) -> None:
    with _vars_lock:
        _vars.pop(name, None)


def metrics(measurement: str, collector: Collector | None = None) -> Func:
    """Return a variable producing ``{"name", "tags", "values"}`` for *measurement*.

    Each read takes a new sample, so concurrent readers never share state::

        from runtime_metrics.exporter import published

        published.publish(sys.argv[0], published.metrics("my-measurement-name"))
    """
    collector = collector or Collector()

    def point() -> dict[str, Any]:
        fields = collector.one_off()
        return {
            "name": measurement,
            "tags": fields.tags(),
            "values": fields.values(),
        }

    return Func(point)


def render() -> str:
    """Render every published variable as one JSON object."""
    parts = [f"{json.dumps(name)}: {var}" for name, var in items()]
    return "{\n" + ",\n".join(parts) + "\n}\n"


class VarsHandler(BaseHTTPRequestHandler):
    """Serves :func:`render` at ``/debug/vars``."""

    path_prefix = "/debug/vars"

    def do_GET(self) -> None:  # noqa: N802
        if self.path.split("?", 1)[0] != self.path_prefix:
            self.send_error(404)
            return
        body = render().encode("utf-8")
        self.send_response(200)
        self.send_header("Content-Type", "application/json; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


def make_server(host: str = "127.0.0.1", port: int = 0) -> ThreadingHTTPServer:
    server = ThreadingHTTPServer((host, port), VarsHandler)
    server.daemon_threads = True
    return server


def serve(host: str = "127.0.0.1", port: int = 8080) -> None:
    """Serve published variables until interrupted."""
    server = make_server(host, port)
    logger.info("Serving published variables on http://%s:%d/debug/vars", *server.server_address[:2])
    try:
        server.serve_forever()
    finally:
        server.server_close()


publish("cmdline", Func(lambda: list(sys.argv)))
