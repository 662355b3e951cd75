"""HTTP endpoints."""

import socket
import threading
from http.server import ThreadingHTTPServer

import pytest
import requests
from prometheus_client import CollectorRegistry

from unbound_exporter.exporter import UnboundCollector
from unbound_exporter.server import (
    DualStackHTTPServer,
    IPv6HTTPServer,
    make_server,
    parse_listen_address,
    server_class_for,
)


@pytest.fixture
def base_url(catalog, static_source):
    registry = CollectorRegistry()
    registry.register(UnboundCollector(static_source(['num.query.tcp=2']), catalog))
    server = make_server('127.0.0.1', 0, registry, metrics_path='/stats')
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f'http://127.0.0.1:{server.server_address[1]}'
    server.shutdown()
    server.server_close()


def test_metrics_on_telemetry_path(base_url):
    response = requests.get(f'{base_url}/stats', timeout=5)
    assert response.status_code == 200
    assert 'unbound_query_tcp_total 2.0' in response.text
    assert 'unbound_up 1.0' in response.text


def test_index_links_to_metrics(base_url):
    response = requests.get(f'{base_url}/', timeout=5)
    assert response.status_code == 200
    assert 'href="/stats"' in response.text


def test_unknown_path(base_url):
    assert requests.get(f'{base_url}/metrics', timeout=5).status_code == 404


@pytest.mark.parametrize('listen_address,expected', [
    (':9167', ('', 9167)),
    ('127.0.0.1:9167', ('127.0.0.1', 9167)),
    ('[::1]:9100', ('::1', 9100)),
])
def test_parse_listen_address(listen_address, expected):
    assert parse_listen_address(listen_address) == expected


@pytest.mark.parametrize('listen_address', ['9167', 'localhost:http', 'localhost'])
def test_parse_listen_address_rejects_invalid(listen_address):
    with pytest.raises(ValueError):
        parse_listen_address(listen_address)


def ipv6_loopback_available():
    if not socket.has_ipv6:
        return False
    try:
        with socket.socket(socket.AF_INET6, socket.SOCK_STREAM) as sock:
            sock.bind(('::1', 0))
    except OSError:
        return False
    return True


@pytest.mark.skipif(not ipv6_loopback_available(), reason='IPv6 loopback not available')
def test_serves_on_ipv6_address(catalog, static_source):
    registry = CollectorRegistry()
    registry.register(UnboundCollector(static_source(['num.query.tcp=2']), catalog))
    address, port = parse_listen_address('[::1]:0')
    server = make_server(address, port, registry)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        response = requests.get(f'http://[::1]:{server.server_address[1]}/metrics', timeout=5)
    finally:
        server.shutdown()
        server.server_close()
    assert response.status_code == 200
    assert 'unbound_query_tcp_total 2.0' in response.text


@pytest.mark.parametrize('address,expected', [
    ('127.0.0.1', ThreadingHTTPServer),
    ('::1', IPv6HTTPServer),
    ('fe80::1', IPv6HTTPServer),
])
def test_server_class_for_address(address, expected):
    assert server_class_for(address) is expected


def test_all_interfaces_uses_dual_stack_when_supported():
    expected = DualStackHTTPServer if socket.has_dualstack_ipv6() else ThreadingHTTPServer
    assert server_class_for('') is expected
