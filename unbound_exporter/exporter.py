"""Export Unbound statistics as Prometheus metrics."""

import logging
from typing import Dict, Iterator, List

from prometheus_client.core import (
    CounterMetricFamily,
    GaugeMetricFamily,
    HistogramMetricFamily,
    Metric,
)

from .catalog import HISTOGRAM_DESCRIPTION, HISTOGRAM_NAME, UP_DEFINITION, MetricCatalog
from .exceptions import FormatError, TransportError
from .models import HistogramSample, MetricDefinition, Sample, ScrapeResult, ValueKind
from .parser import StatsParser
from .utils import build_fqname, format_bound_for_label

logger = logging.getLogger(__name__)


def exposed_name(definition: MetricDefinition, namespace: str) -> str:
    """Sample name as served: counters always end in ``_total``, as prometheus_client exposes them."""
    name = build_fqname(namespace, definition.name)
    if definition.value_kind is ValueKind.COUNTER and not name.endswith('_total'):
        name += '_total'
    return name


def new_family(definition: MetricDefinition, namespace: str) -> Metric:
    """Create an empty metric family for a catalog definition."""
    name = build_fqname(namespace, definition.name)
    if definition.value_kind is ValueKind.COUNTER:
        return CounterMetricFamily(name, definition.description, labels=list(definition.label_names))
    return GaugeMetricFamily(name, definition.description, labels=list(definition.label_names))


def histogram_buckets(histogram: HistogramSample) -> List[tuple]:
    """Cumulative buckets as ``(le, count)`` pairs, closed by ``+Inf``."""
    buckets = [(format_bound_for_label(bound), count) for bound, count in histogram.buckets]
    buckets.append(('+Inf', histogram.count))
    return buckets


class UnboundCollector:
    """Collects Unbound statistics on every Prometheus scrape.

    Each call to collect() reads a fresh statistics feed from the source and
    translates it. If the feed cannot be fetched or parsed only the ``up``
    gauge is exported, set to 0.
    """

    def __init__(self, source, catalog: MetricCatalog, namespace: str = 'unbound'):
        """Initialize the collector.

        Args:
            source: Object with a read_stats() method returning the feed lines
            catalog: Metric definitions used to translate the feed
            namespace: Prefix of every exported metric name
        """
        self.source = source
        self.catalog = catalog
        self.namespace = namespace
        self.parser = StatsParser(catalog)

    def scrape(self) -> ScrapeResult:
        return self.parser.parse(self.source.read_stats())

    def describe(self) -> Iterator[Metric]:
        yield self._up_family()
        for definition in self.catalog:
            yield new_family(definition, self.namespace)
        yield HistogramMetricFamily(
            build_fqname(self.namespace, HISTOGRAM_NAME),
            HISTOGRAM_DESCRIPTION,
            labels=[],
        )

    def collect(self) -> Iterator[Metric]:
        try:
            result = self.scrape()
        except (FormatError, TransportError) as e:
            logger.error("Failed to scrape Unbound statistics: %s", e)
            yield self._up_family(0)
            return
        yield from self.build_families(result)
        yield self._up_family(1)

    def build_families(self, result: ScrapeResult) -> Iterator[Metric]:
        """Group the samples of one scrape into metric families, in catalog order."""
        by_definition: Dict[str, List[Sample]] = {}
        for sample in result.samples:
            by_definition.setdefault(sample.definition.name, []).append(sample)

        for definition in self.catalog:
            samples = by_definition.get(definition.name)
            if not samples:
                continue
            family = new_family(definition, self.namespace)
            for sample in samples:
                family.add_metric(list(sample.label_values), sample.value)
            yield family

        yield HistogramMetricFamily(
            build_fqname(self.namespace, HISTOGRAM_NAME),
            HISTOGRAM_DESCRIPTION,
            buckets=histogram_buckets(result.histogram),
            sum_value=result.histogram.sum,
        )

    def _up_family(self, value=None) -> GaugeMetricFamily:
        return GaugeMetricFamily(
            build_fqname(self.namespace, UP_DEFINITION.name),
            UP_DEFINITION.description,
            value=value,
        )
