"""
HTTP server exposing the exporter's endpoints.

Endpoints:
    GET /             - Index page linking to metrics and health; any other
                        path falls through to it
    GET <metrics>     - Prometheus exposition (default /metrics)
    GET /healthz      - Liveness: always 204 with an empty body
"""
import socket
import threading
from http.server import ThreadingHTTPServer, BaseHTTPRequestHandler
from typing import Optional, Tuple
from urllib.parse import urlparse

from prometheus_client import CollectorRegistry, generate_latest, CONTENT_TYPE_LATEST

from mailgun_exporter.common.logging_config import get_logger
from mailgun_exporter.common.exceptions import ConfigurationError, ServerStartError

logger = get_logger(__name__)

HEALTH_PATH = "/healthz"

INDEX_TEMPLATE = """<html>
<head><title>Mailgun Exporter</title></head>
<body>
<h1>Mailgun Exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
<p><a href='{health_path}'>Health</a></p>
</body>
</html>
"""


def parse_listen_address(address: str) -> Tuple[str, int]:
    """
    Split a ``[host]:port`` listen address.

    ``":9616"`` binds every interface; IPv6 hosts are written in brackets,
    e.g. ``"[::1]:9616"``.

    Raises:
        ConfigurationError: If the address has no valid port
    """
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ConfigurationError(f"invalid listen address {address!r}: missing port")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_number = int(port)
    except ValueError:
        raise ConfigurationError(f"invalid listen address {address!r}: bad port {port!r}")
    if not 0 <= port_number <= 65535:
        raise ConfigurationError(f"invalid listen address {address!r}: port out of range")
    return host, port_number


class ExporterHTTPHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the exporter endpoints."""

    # Class-level references (set by ExporterHTTPServer)
    registry: Optional[CollectorRegistry] = None
    telemetry_path: str = "/metrics"

    def do_GET(self):
        path = urlparse(self.path).path

        if path == self.telemetry_path:
            self._send_metrics()

        elif path == HEALTH_PATH:
            self.send_response(204)
            self.end_headers()

        else:
            body = INDEX_TEMPLATE.format(
                metrics_path=self.telemetry_path,
                health_path=HEALTH_PATH
            ).encode("utf-8")
            self._send_body(200, "text/html; charset=utf-8", body)

    def _send_metrics(self):
        try:
            body = generate_latest(self.registry)
        except Exception as e:
            logger.exception(f"Error generating metrics: {e}")
            self._send_body(500, "text/plain; charset=utf-8", f"Error generating metrics: {e}\n".encode("utf-8"))
            return
        self._send_body(200, CONTENT_TYPE_LATEST, body)

    def _send_body(self, status_code: int, content_type: str, body: bytes):
        self.send_response(status_code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        """Route access logging through the structured logger."""
        logger.debug(f"{self.address_string()} - {format % args}")


class IPv6HTTPServer(ThreadingHTTPServer):
    address_family = socket.AF_INET6


class DualStackHTTPServer(IPv6HTTPServer):
    """Listens on all IPv6 and IPv4 interfaces when no host is given."""

    def server_bind(self):
        self.socket.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        super().server_bind()


class ExporterHTTPServer:
    """
    Threaded HTTP server for the exporter.

    Each request is handled on its own thread, so concurrent scrapes each run
    their own collection pass.

    Usage:
        server = ExporterHTTPServer(registry, ":9616", "/metrics")
        server.serve_forever()      # blocking, for the entry point
        # or
        server.start()              # daemon thread, for tests
        server.stop()
    """

    def __init__(
        self,
        registry: CollectorRegistry,
        listen_address: str = ":9616",
        telemetry_path: str = "/metrics"
    ):
        """
        Args:
            registry: Registry rendered on the metrics path
            listen_address: ``[host]:port`` to bind
            telemetry_path: Path under which metrics are exposed

        Raises:
            ConfigurationError: If the address or path is invalid
        """
        if not telemetry_path.startswith("/"):
            raise ConfigurationError(f"telemetry path must start with '/': {telemetry_path!r}")

        self.registry = registry
        self.listen_address = listen_address
        self.host, self.port = parse_listen_address(listen_address)
        self.telemetry_path = telemetry_path
        self._server: Optional[ThreadingHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    def bind(self) -> ThreadingHTTPServer:
        """
        Bind the listening socket.

        Raises:
            ServerStartError: If the address cannot be bound
        """
        handler = type(
            'ExporterHandler',
            (ExporterHTTPHandler,),
            {'registry': self.registry, 'telemetry_path': self.telemetry_path}
        )
        if ":" in self.host:
            server_cls = IPv6HTTPServer
        elif not self.host and socket.has_dualstack_ipv6():
            server_cls = DualStackHTTPServer
        else:
            server_cls = ThreadingHTTPServer

        try:
            self._server = server_cls((self.host, self.port), handler)
        except OSError as e:
            raise ServerStartError(f"Failed to listen on {self.listen_address}: {e}") from e

        self._server.daemon_threads = True
        logger.info(
            f"Starting HTTP server on listen address {self.listen_address} "
            f"and metric path {self.telemetry_path}"
        )
        return self._server

    @property
    def server_address(self) -> Tuple[str, int]:
        """Bound (host, port); useful when listening on port 0."""
        if not self._server:
            raise RuntimeError("server is not bound")
        return self._server.server_address[:2]

    def serve_forever(self) -> None:
        """Bind and serve in the calling thread until interrupted."""
        server = self._server or self.bind()
        try:
            server.serve_forever()
        finally:
            server.server_close()

    def start(self) -> None:
        """Bind and serve in a daemon thread."""
        server = self._server or self.bind()
        self._thread = threading.Thread(
            target=server.serve_forever,
            name="http-server",
            daemon=True
        )
        self._thread.start()

    def shutdown(self) -> None:
        """
        Ask a running serve loop to return. Blocks until it has, so it must
        not be called from the serving thread.
        """
        if self._server:
            self._server.shutdown()

    def stop(self) -> None:
        if self._server:
            if self.is_running:
                self._server.shutdown()
            self._server.server_close()
            logger.info("HTTP server stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
