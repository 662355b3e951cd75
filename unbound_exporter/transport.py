"""Fetch raw statistics from Unbound's remote control interface."""

import logging
import socket
import ssl
from typing import List, Optional, Tuple

from .exceptions import TransportError

logger = logging.getLogger(__name__)

DEFAULT_CONTROL_PORT = 8953
# Remote control protocol version 1, statistics without resetting the counters
STATS_COMMAND = b'UBCT1 stats_noreset\n'


def parse_host(host: str) -> Tuple[str, int]:
    """Split ``host:port`` into its parts.

    Accepts ``name:port``, ``ipv4:port`` and ``[ipv6]:port``; the port defaults
    to Unbound's control port when omitted.
    """
    if host.startswith('['):
        address, sep, rest = host[1:].partition(']')
        if not sep:
            raise ValueError(f"Unterminated IPv6 address in {host!r}")
        if not rest:
            return address, DEFAULT_CONTROL_PORT
        if not rest.startswith(':'):
            raise ValueError(f"Invalid host {host!r}")
        port = rest[1:]
    elif host.count(':') == 1:
        address, port = host.split(':')
    else:
        # bare hostname, or an IPv6 address without brackets
        return host, DEFAULT_CONTROL_PORT
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"Invalid port in host {host!r}")
    return address or 'localhost', int(port)


def _read_lines(stream) -> List[str]:
    return stream.read().splitlines()


class UnboundControlClient:
    """Client for Unbound's TLS protected control socket."""

    def __init__(self, host: str, ca_file: str, cert_file: str, key_file: str,
                 server_name: str = 'unbound', timeout: Optional[float] = None):
        """Initialize the client.

        Args:
            host: Control interface as ``host:port``
            ca_file: Unbound server certificate, used to authenticate the server
            cert_file: Client certificate presented to Unbound
            key_file: Private key of the client certificate
            server_name: Name expected in the server certificate
            timeout: Optional deadline in seconds for connecting and reading

        Raises:
            TransportError: if the certificates cannot be loaded.
        """
        try:
            self.address = parse_host(host)
        except ValueError as e:
            raise TransportError(str(e)) from e
        self.host = host
        self.server_name = server_name
        self.timeout = timeout
        self.context = self._create_context(ca_file, cert_file, key_file)

    @staticmethod
    def _create_context(ca_file: str, cert_file: str, key_file: str) -> ssl.SSLContext:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        try:
            context.load_verify_locations(cafile=ca_file)
            context.load_cert_chain(certfile=cert_file, keyfile=key_file)
        except OSError as e:
            raise TransportError(f"Failed to load TLS credentials: {e}") from e
        return context

    def read_stats(self) -> List[str]:
        """Request the statistics and read them until Unbound closes the stream."""
        logger.debug("Requesting statistics from %s", self.host)
        try:
            with socket.create_connection(self.address, timeout=self.timeout) as sock:
                with self.context.wrap_socket(sock, server_hostname=self.server_name) as conn:
                    conn.sendall(STATS_COMMAND)
                    with conn.makefile('r', encoding='utf-8', errors='replace', newline='\n') as stream:
                        return _read_lines(stream)
        except OSError as e:
            raise TransportError(f"Failed to read statistics from {self.host}: {e}") from e


class StatsFileSource:
    """Reads a statistics dump saved with ``unbound-control stats_noreset``."""

    def __init__(self, path: str):
        self.path = path

    def read_stats(self) -> List[str]:
        try:
            with open(self.path, 'r', encoding='utf-8', errors='replace') as f:
                return _read_lines(f)
        except OSError as e:
            raise TransportError(f"Failed to read statistics file {self.path}: {e}") from e
