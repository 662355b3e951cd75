"""
Expose Unbound statistics as Prometheus metrics, either by serving them
for scraping or by pushing them with Prometheus remote write.
"""

import argparse
import logging
import sys
import time
from typing import List, Optional

from prometheus_client import CollectorRegistry

from .catalog import MetricCatalog
from .exceptions import CatalogError, FormatError, TransportError
from .exporter import UnboundCollector
from .remote_write import RemoteWriteClient
from .server import make_server, parse_listen_address
from .transport import StatsFileSource, UnboundControlClient
from .utils import prepare_headers

logger = logging.getLogger(__name__)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Export Unbound statistics as Prometheus metrics'
    )
    parser.add_argument(
        '--web.listen-address',
        dest='listen_address',
        default=':9167',
        help='Address to listen on for web interface and telemetry (default: :9167)'
    )
    parser.add_argument(
        '--web.telemetry-path',
        dest='metrics_path',
        default='/metrics',
        help='Path under which to expose metrics (default: /metrics)'
    )
    parser.add_argument(
        '--unbound.host',
        dest='unbound_host',
        default='localhost:8953',
        help='Unbound control socket hostname and port number (default: localhost:8953)'
    )
    parser.add_argument(
        '--unbound.ca',
        dest='unbound_ca',
        default='/etc/unbound/unbound_server.pem',
        help='Unbound server certificate'
    )
    parser.add_argument(
        '--unbound.cert',
        dest='unbound_cert',
        default='/etc/unbound/unbound_control.pem',
        help='Unbound client certificate'
    )
    parser.add_argument(
        '--unbound.key',
        dest='unbound_key',
        default='/etc/unbound/unbound_control.key',
        help='Unbound client key'
    )
    parser.add_argument(
        '--unbound.stats-file',
        dest='stats_file',
        help='Read statistics from a saved "unbound-control stats_noreset" dump instead of the control socket'
    )
    parser.add_argument(
        '--namespace',
        default='unbound',
        help='Prefix of all exported metric names (default: unbound)'
    )
    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )
    parser.add_argument(
        '--remote-write-url',
        help='Push metrics to this Prometheus remote write endpoint instead of serving them'
    )
    parser.add_argument(
        '--remote-write-header',
        action='append',
        help='Additional header for remote write (format: Key=Value)'
    )
    parser.add_argument(
        '--remote-write-interval',
        type=float,
        default=15.0,
        help='Seconds between pushes in remote write mode (default: 15)'
    )
    parser.add_argument(
        '--once',
        action='store_true',
        help='Push a single scrape and exit (remote write mode)'
    )
    parser.add_argument(
        '--instance-label',
        default='unbound',
        help='Value for the instance label added to all pushed metrics (default: unbound)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Scrape and convert metrics without sending them (remote write mode)'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Print timestamp and metric information to stdout for each pushed metric'
    )
    parser.add_argument(
        '--debug-file',
        help='Save the uncompressed payload data (before snappy compression) as JSON to the specified file'
    )
    return parser


def push_once(collector: UnboundCollector, client: RemoteWriteClient,
              dry_run: bool = False, debug_file: Optional[str] = None) -> bool:
    """Scrape Unbound once and push the result; a failed scrape pushes ``up`` = 0."""
    timestamp_ms = int(time.time() * 1000)
    try:
        result = collector.scrape()
    except (FormatError, TransportError) as e:
        logger.error("Failed to scrape Unbound statistics: %s", e)
        write_request = client.build_failure_request(timestamp_ms)
    else:
        write_request = client.build_write_request(result, timestamp_ms)
    return client.send(write_request, dry_run=dry_run, debug_file=debug_file)


def run_push(collector: UnboundCollector, args: argparse.Namespace) -> int:
    client = RemoteWriteClient(
        args.remote_write_url,
        prepare_headers(args.remote_write_header),
        instance_label=args.instance_label,
        namespace=args.namespace,
        verbose=args.verbose,
    )
    if args.once:
        return 0 if push_once(collector, client, args.dry_run, args.debug_file) else 1

    logger.info("Pushing metrics to %s every %.1fs", args.remote_write_url, args.remote_write_interval)
    while True:
        started = time.monotonic()
        push_once(collector, client, args.dry_run, args.debug_file)
        time.sleep(max(0.0, args.remote_write_interval - (time.monotonic() - started)))


def run_server(collector: UnboundCollector, args: argparse.Namespace) -> int:
    registry = CollectorRegistry()
    registry.register(collector)
    address, port = parse_listen_address(args.listen_address)
    try:
        server = make_server(address, port, registry, args.metrics_path)
    except OSError as e:
        logger.error("Cannot listen on %s: %s", args.listen_address, e)
        return 1
    logger.info("Listening on address:port => %s", args.listen_address)
    try:
        server.serve_forever()
    finally:
        server.server_close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)
    logging.basicConfig(
        level=args.log_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )

    logger.info("Starting unbound_exporter")
    try:
        catalog = MetricCatalog.default()
        if args.stats_file:
            source = StatsFileSource(args.stats_file)
        else:
            source = UnboundControlClient(args.unbound_host, args.unbound_ca, args.unbound_cert, args.unbound_key)
        if not args.remote_write_url:
            parse_listen_address(args.listen_address)
    except (CatalogError, TransportError, ValueError) as e:
        logger.error("Error: %s", e)
        return 1

    collector = UnboundCollector(source, catalog, namespace=args.namespace)
    try:
        if args.remote_write_url:
            return run_push(collector, args)
        return run_server(collector, args)
    except KeyboardInterrupt:
        logger.info("Stopping unbound_exporter")
        return 0


if __name__ == '__main__':
    sys.exit(main())
