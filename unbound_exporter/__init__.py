"""Translate Unbound statistics into Prometheus metrics."""

from .catalog import MetricCatalog
from .exceptions import CatalogError, FormatError, TransportError, UnboundExporterError
from .exporter import UnboundCollector
from .models import HistogramSample, MetricDefinition, Sample, ScrapeResult, ValueKind
from .parser import HistogramAccumulator, StatsParser
from .remote_write import RemoteWriteClient
from .transport import StatsFileSource, UnboundControlClient

__all__ = [
    'MetricCatalog',
    'CatalogError',
    'FormatError',
    'TransportError',
    'UnboundExporterError',
    'UnboundCollector',
    'HistogramSample',
    'MetricDefinition',
    'Sample',
    'ScrapeResult',
    'ValueKind',
    'HistogramAccumulator',
    'StatsParser',
    'RemoteWriteClient',
    'StatsFileSource',
    'UnboundControlClient',
]
