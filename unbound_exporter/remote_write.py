"""Client for sending Unbound metrics via Prometheus remote write."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests
import snappy
from google.protobuf.json_format import MessageToJson

from prometheus_remote_writer.proto import remote_pb2 as prompb_pb2
from prometheus_remote_writer.proto import types_pb2

from .catalog import HISTOGRAM_NAME, UP_DEFINITION
from .exporter import exposed_name
from .models import ScrapeResult
from .utils import build_fqname, format_bound_for_label

logger = logging.getLogger(__name__)


class RemoteWriteClient:
    """Client for sending scrape results via remote write."""

    def __init__(self, remote_write_url: str, headers: Optional[Dict[str, str]] = None,
                 instance_label: str = 'unbound', namespace: str = 'unbound', verbose: bool = False):
        self.remote_write_url = remote_write_url
        self.headers = dict(headers or {})
        self.headers.setdefault('Content-Type', 'application/x-protobuf')
        self.headers.setdefault('Content-Encoding', 'snappy')
        self.headers.setdefault('X-Prometheus-Remote-Write-Version', '0.1.0')
        self.instance_label = instance_label
        self.namespace = namespace
        self.verbose = verbose

    def build_write_request(self, result: ScrapeResult, timestamp_ms: int, up: int = 1):
        """Convert one scrape into a remote write request.

        Args:
            result: Samples and histogram of a successful scrape
            timestamp_ms: Timestamp given to every sample, in milliseconds
            up: Value of the ``up`` series

        Returns:
            A WriteRequest with one time series per sample, the histogram as
            ``_bucket``/``_sum``/``_count`` series, and ``up``.
        """
        time_series_map: Dict[tuple, Any] = {}

        for sample in result.samples:
            labels = dict(zip(sample.definition.label_names, sample.label_values))
            name = exposed_name(sample.definition, self.namespace)
            self._add_sample_to_map(time_series_map, name, labels, sample.value, timestamp_ms)

        histogram = result.histogram
        histogram_name = build_fqname(self.namespace, HISTOGRAM_NAME)
        for bound, cumulative_count in histogram.buckets:
            self._add_sample_to_map(time_series_map, f'{histogram_name}_bucket',
                                    {'le': format_bound_for_label(bound)}, cumulative_count, timestamp_ms)
        # +Inf bucket is required for histogram_quantile
        self._add_sample_to_map(time_series_map, f'{histogram_name}_bucket', {'le': '+Inf'},
                                histogram.count, timestamp_ms)
        self._add_sample_to_map(time_series_map, f'{histogram_name}_sum', {}, histogram.sum, timestamp_ms)
        self._add_sample_to_map(time_series_map, f'{histogram_name}_count', {}, histogram.count, timestamp_ms)

        self._add_sample_to_map(time_series_map, build_fqname(self.namespace, UP_DEFINITION.name), {},
                                up, timestamp_ms)
        return self._finalize_time_series(time_series_map)

    def build_failure_request(self, timestamp_ms: int):
        """Write request reporting a failed scrape: only ``up`` set to 0."""
        time_series_map: Dict[tuple, Any] = {}
        self._add_sample_to_map(time_series_map, build_fqname(self.namespace, UP_DEFINITION.name), {},
                                0, timestamp_ms)
        return self._finalize_time_series(time_series_map)

    def send(self, write_request, dry_run: bool = False, debug_file: Optional[str] = None) -> bool:
        """Send a write request to the remote write endpoint.

        Args:
            write_request: Request built by build_write_request() or build_failure_request()
            dry_run: If True, process metrics but skip sending to endpoint
            debug_file: Optional path to save the uncompressed payload as JSON

        Returns:
            True if successful, False otherwise
        """
        num_timeseries = len(write_request.timeseries)
        total_samples = sum(len(ts.samples) for ts in write_request.timeseries)
        logger.debug("Prepared %d time series with %d total samples", num_timeseries, total_samples)

        data = write_request.SerializeToString()

        if debug_file:
            self._write_debug_file(write_request, debug_file)

        if dry_run:
            logger.info("Dry-run mode: Skipping actual send to %s", self.remote_write_url)
            return True

        compressed_data = snappy.compress(data)
        logger.debug("Sending %d bytes (uncompressed: %d bytes)", len(compressed_data), len(data))

        try:
            response = requests.post(
                self.remote_write_url,
                data=compressed_data,
                headers=self.headers,
                timeout=30
            )
        except requests.exceptions.ConnectionError:
            logger.error("Connection error: Could not connect to %s", self.remote_write_url)
            return False
        except requests.exceptions.RequestException as e:
            logger.error("Error in remote write: %s", e)
            return False

        if response.status_code in (200, 204):
            logger.debug("Successfully sent metrics (status %d)", response.status_code)
            return True
        logger.error("Error sending metrics: %d - %s", response.status_code, response.text)
        return False

    def _write_debug_file(self, write_request, debug_file: str) -> None:
        try:
            # protobuf 26.x+ renamed including_default_value_fields
            json_data = MessageToJson(write_request, always_print_fields_with_no_presence=True)  # type: ignore[call-arg]
        except TypeError:
            json_data = MessageToJson(write_request, including_default_value_fields=True)  # type: ignore[call-arg]
        try:
            with open(debug_file, 'w', encoding='utf-8') as f:
                f.write(json_data)
        except OSError as e:
            logger.warning("Failed to write debug file %s: %s", debug_file, e)
            return
        logger.info("Saved uncompressed payload as JSON (%d bytes) to %s", len(json_data), debug_file)

    def _finalize_time_series(self, time_series_map: Dict[tuple, Any]):
        """Add all time series to a new write request."""
        write_request = prompb_pb2.WriteRequest()  # type: ignore
        for time_series in time_series_map.values():
            new_ts = write_request.timeseries.add()
            new_ts.CopyFrom(time_series)
        return write_request

    def _print_metric_sample(self, time_series, timestamp_ms: int, value: float) -> None:
        """Print a single metric sample in verbose mode."""
        metric_name = None
        labels = {}
        for label in time_series.labels:
            if label.name == '__name__':
                metric_name = label.value
            else:
                labels[label.name] = label.value

        if labels:
            label_str = ','.join(f'{k}="{v}"' for k, v in sorted(labels.items()))
            metric_str = f'{metric_name}{{{label_str}}}'
        else:
            metric_str = metric_name

        timestamp_dt = datetime.fromtimestamp(timestamp_ms / 1000.0)
        print(f"{timestamp_dt.isoformat()} {metric_str} {value}")

    def _add_sample_to_map(self, time_series_map: Dict[tuple, Any], metric_name: str, labels: Dict[str, str],
                           value: float, timestamp_ms: int):
        """Add a sample to the time series map, grouping by metric name and labels."""
        labels_with_instance = labels.copy()
        labels_with_instance['instance'] = self.instance_label

        sorted_labels = tuple(sorted(labels_with_instance.items()))
        key = (metric_name, sorted_labels)

        if key not in time_series_map:
            time_series = types_pb2.TimeSeries()  # type: ignore

            label = time_series.labels.add()
            label.name = '__name__'
            label.value = metric_name

            # Remote write expects labels sorted by name
            for key_name, val in sorted_labels:
                label = time_series.labels.add()
                label.name = key_name
                label.value = str(val)

            time_series_map[key] = time_series

        sample = time_series_map[key].samples.add()
        sample.value = value
        sample.timestamp = timestamp_ms

        if self.verbose:
            self._print_metric_sample(time_series_map[key], timestamp_ms, value)
