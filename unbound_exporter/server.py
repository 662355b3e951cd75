"""HTTP server exposing the collected metrics."""

import contextlib
import html
import logging
import socket
import urllib.parse
from http.server import ThreadingHTTPServer
from typing import Tuple

from prometheus_client import CollectorRegistry, MetricsHandler

logger = logging.getLogger(__name__)

INDEX = """<!DOCTYPE html>
<html lang="en">
<head><title>Unbound Exporter</title></head>
<body>
<h1>Unbound Exporter</h1>
<p><a href="{path}">Metrics</a></p>
</body>
</html>"""


def parse_listen_address(listen_address: str) -> Tuple[str, int]:
    """Split ``[address]:port`` into a bind address and port; ``:9167`` binds all interfaces."""
    address, sep, port = listen_address.rpartition(':')
    if not sep or not port.isdigit():
        raise ValueError(f"Invalid listen address {listen_address!r}")
    return address.strip('[]'), int(port)


class UnboundMetricsHandler(MetricsHandler):
    """Serves metrics on the telemetry path and a small index page on ``/``.

    Every request to the telemetry path triggers a collect() of the registry,
    so each scrape reads a fresh statistics feed from Unbound.
    """

    metrics_path = '/metrics'

    def do_GET(self) -> None:  # noqa: N802
        path = urllib.parse.urlsplit(self.path).path
        if path == self.metrics_path:
            logger.debug("Returning metrics for request from %s", self.client_address[0])
            super().do_GET()
        elif path == '/':
            body = INDEX.format(path=html.escape(self.metrics_path, quote=True)).encode('utf-8')
            self.send_response(200)
            self.send_header('Content-Type', 'text/html; charset=utf-8')
            self.send_header('Content-Length', str(len(body)))
            self.end_headers()
            self.wfile.write(body)
        else:
            self.send_error(404)

    def log_message(self, format, *args) -> None:  # noqa: A002
        logger.debug("%s - %s", self.address_string(), format % args)


class IPv6HTTPServer(ThreadingHTTPServer):
    address_family = socket.AF_INET6


class DualStackHTTPServer(IPv6HTTPServer):
    """Binds ``::`` and also accepts IPv4 clients."""

    def server_bind(self) -> None:
        with contextlib.suppress(AttributeError, OSError):
            self.socket.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_V6ONLY, 0)
        super().server_bind()


def server_class_for(address: str):
    """Pick the server class able to bind address; an empty address means all interfaces."""
    if not address:
        return DualStackHTTPServer if socket.has_dualstack_ipv6() else ThreadingHTTPServer
    if ':' in address:
        return IPv6HTTPServer
    return ThreadingHTTPServer


def make_server(address: str, port: int, registry: CollectorRegistry,
                metrics_path: str = '/metrics') -> ThreadingHTTPServer:
    """Create (but do not start) the HTTP server for a registry.

    Raises:
        OSError: if the address cannot be bound.
    """
    handler = type('UnboundMetricsHandler', (UnboundMetricsHandler,), {
        'registry': registry,
        'metrics_path': metrics_path,
    })
    server_class = server_class_for(address)
    if server_class is DualStackHTTPServer:
        address = '::'
    server = server_class((address, port), handler)
    server.daemon_threads = True
    return server
