from __future__ import annotations

"""HTTP server exposing the landing page and the Prometheus scrape endpoint."""

import logging
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from infrastructure.metrics import CONTENT_TYPE

if TYPE_CHECKING:
    from infrastructure.metrics import MetricsRegistry


LANDING_PAGE_TEMPLATE = """<html>
             <head><title>Speedtest Exporter</title></head>
             <body>
             <h1>Speedtest Exporter</h1>
             <p><a href='{metrics_path}'>Metrics</a></p>
             </body>
             </html>"""


def parse_listen_address(address: str) -> tuple[str, int]:
    """Split ``host:port`` into a bindable (host, port) pair.

    An empty host (``:9112``) binds all interfaces, IPv4 and IPv6 where the
    host supports a dual-stack socket. IPv6 hosts may be
    bracketed (``[::1]:9112``).

    Raises:
        ValueError: if the port is missing or not a valid TCP port.
    """
    host, sep, port_str = address.rpartition(":")
    if not sep:
        raise ValueError(f"listen address {address!r} has no port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port = int(port_str)
    except ValueError:
        raise ValueError(f"invalid port in listen address {address!r}") from None
    if not 0 <= port <= 65535:
        raise ValueError(f"port out of range in listen address {address!r}")
    return host, port


def _format_host(host: str) -> str:
    if not host:
        return "0.0.0.0"
    return f"[{host}]" if ":" in host else host


class ExporterHTTPServer(ThreadingHTTPServer):
    """Threaded HTTP server carrying the registry and telemetry path for its handlers."""

    daemon_threads = True
    allow_reuse_port = False

    def __init__(self, server_address: tuple[str, int], registry: MetricsRegistry, metrics_path: str) -> None:
        self.registry = registry
        self.metrics_path = metrics_path
        self.dualstack = False
        host, port = server_address
        if not host and socket.has_dualstack_ipv6():
            # empty host: all interfaces, IPv4 and IPv6 on one socket
            self.address_family = socket.AF_INET6
            self.dualstack = True
            server_address = ("::", port)
        elif ":" in host:
            self.address_family = socket.AF_INET6
        super().__init__(server_address, ExporterHandler)

    def server_bind(self) -> None:
        if self.dualstack:
            self.socket.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        super().server_bind()


class ExporterHandler(BaseHTTPRequestHandler):
    """Serves ``<metrics_path>`` from the registry and the landing page everywhere else."""

    server: ExporterHTTPServer
    server_version = "SpeedtestExporter"

    def do_GET(self) -> None:
        """Handle GET requests."""
        self._respond(with_body=True)

    def do_HEAD(self) -> None:
        """Handle HEAD requests."""
        self._respond(with_body=False)

    def _respond(self, *, with_body: bool) -> None:
        path = urlsplit(self.path).path
        if path == self.server.metrics_path:
            try:
                body = self.server.registry.render()
            except Exception as exc:
                logging.error(f"Metrics error: {exc}")
                self.send_error(500, "Internal Server Error")
                return
            content_type = CONTENT_TYPE
        else:
            body = LANDING_PAGE_TEMPLATE.format(metrics_path=self.server.metrics_path).encode("utf-8")
            content_type = "text/html; charset=utf-8"

        self.send_response(200)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        if with_body:
            self.wfile.write(body)

    def log_message(self, format: str, *args) -> None:
        """Route access logs to debug logging."""
        logging.debug(f"Exporter server: {format % args}")


class ExporterServer:
    """Prometheus exposition server running in a background thread."""

    def __init__(
        self,
        registry: MetricsRegistry,
        addr: str = "",
        port: int = 9112,
        metrics_path: str = "/metrics",
    ) -> None:
        self.registry = registry
        self.addr = addr
        self.port = port
        self.metrics_path = metrics_path
        self.server: ExporterHTTPServer | None = None
        self.thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    @property
    def server_address(self) -> tuple[str, int]:
        """Actually bound (host, port); useful when binding port 0."""
        if self.server is None:
            return self.addr, self.port
        host, port = self.server.server_address[:2]
        return host, port

    def start(self) -> None:
        """Bind the listener and serve in a daemon thread.

        Raises:
            OSError: if the address cannot be bound.
        """
        if self.running:
            return

        self.server = ExporterHTTPServer((self.addr, self.port), self.registry, self.metrics_path)
        self.thread = threading.Thread(
            target=self.server.serve_forever,
            name="exporter-http",
            daemon=True,
        )
        self.thread.start()

        host, port = self.server_address
        logging.info(f"Listening on {_format_host(host)}:{port} (telemetry path {self.metrics_path})")

    def stop(self) -> None:
        """Stop serving and close the listening socket."""
        if self.server is None:
            return
        self.server.shutdown()
        self.server.server_close()
        if self.thread is not None:
            self.thread.join(timeout=5.0)
        self.server = None
        self.thread = None
        logging.info("Exporter server stopped")


def start_exporter_server(
    registry: MetricsRegistry,
    listen_address: str = ":9112",
    metrics_path: str = "/metrics",
) -> ExporterServer:
    """Parse ``listen_address``, bind and start the exposition server.

    Raises:
        ValueError: malformed listen address.
        OSError: bind failure.
    """
    addr, port = parse_listen_address(listen_address)
    server = ExporterServer(registry, addr=addr, port=port, metrics_path=metrics_path)
    server.start()
    return server
