"""Parser for Unbound statistics output."""

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .catalog import HISTOGRAM_PATTERN, MetricCatalog
from .exceptions import FormatError
from .models import HistogramSample, Sample, ScrapeResult

logger = logging.getLogger(__name__)

UINT64_MAX = 2 ** 64 - 1
UNSIGNED_PATTERN = re.compile(r'[0-9]+')
# Decimal or exponent notation, or inf/nan; no surrounding whitespace or digit separators
FLOAT_PATTERN = re.compile(
    r'[+-]?(?:(?:[0-9]+(?:\.[0-9]*)?|\.[0-9]+)(?:[eE][+-]?[0-9]+)?|inf|infinity|nan)',
    re.IGNORECASE,
)


def parse_line(line: str) -> Tuple[str, str]:
    """Split a ``key=value`` statistics line into its key and value.

    Raises:
        FormatError: if the line is not exactly one non-empty key and one
            non-empty value separated by ``=``.
    """
    text = line.rstrip('\r\n')
    fields = text.split('=')
    if len(fields) != 2 or not fields[0] or not fields[1]:
        raise FormatError(f"{text!r} is not a valid key-value pair")
    return fields[0], fields[1]


def resolve(catalog: MetricCatalog, key: str, value: str) -> Optional[Sample]:
    """Turn a parsed statistic into a sample using the first matching definition.

    Returns None for keys the catalog does not track.
    """
    matched = catalog.match(key)
    if matched is None:
        return None
    definition, label_values = matched
    if not FLOAT_PATTERN.fullmatch(value):
        raise FormatError(f"Invalid value {value!r} for statistic {key}")
    number = float(value)
    return Sample(definition=definition, label_values=label_values, value=number)


def cumulate_buckets(buckets: Sequence[Tuple[float, int]]) -> List[Tuple[float, int]]:
    """Convert ascending (upper_bound, raw_count) pairs into cumulative counts."""
    cumulative = []
    running = 0
    for upper_bound, count in buckets:
        running += count
        cumulative.append((upper_bound, running))
    return cumulative


class HistogramAccumulator:
    """Rebuilds Unbound's response time histogram from its per-range counts.

    Unbound reports how many queries were answered within each disjoint latency
    range (``histogram.0.128000.to.0.256000=12``). Prometheus expects cumulative
    buckets keyed by upper bound, so the raw counts are collected first and
    prefix-summed once the whole feed has been read.
    """

    def __init__(self):
        self.count = 0
        self.sum = 0.0
        self._raw_counts: Dict[float, int] = {}

    def add(self, key: str, value: str) -> bool:
        """Record a bucket line. Returns False if key is not a histogram key."""
        match = HISTOGRAM_PATTERN.match(key)
        if not match:
            return False
        lower = float(match.group(1))
        upper = float(match.group(2))
        if not UNSIGNED_PATTERN.fullmatch(value) or int(value) > UINT64_MAX:
            raise FormatError(f"Invalid bucket count {value!r} for statistic {key}")
        count = int(value)

        self.count += count
        # Unbound only reports per-range counts, never the latencies themselves,
        # so the sum is estimated from the bucket width.
        self.sum += (upper - lower) * count
        if upper in self._raw_counts:
            # Later line wins for the bucket but both stay in the total count.
            logger.warning("Duplicate histogram upper bound %s in %s, overwriting previous count %d",
                           match.group(2), key, self._raw_counts[upper])
        self._raw_counts[upper] = count
        return True

    def buckets(self) -> List[Tuple[float, int]]:
        """Raw (upper_bound, count) pairs in ascending upper bound order."""
        return sorted(self._raw_counts.items())

    def finish(self) -> HistogramSample:
        return HistogramSample(
            count=self.count,
            sum=self.sum,
            buckets=tuple(cumulate_buckets(self.buckets())),
        )


class StatsParser:
    """Parser for ``unbound-control stats_noreset`` output."""

    def __init__(self, catalog: MetricCatalog):
        self.catalog = catalog

    def parse(self, lines: Iterable[str]) -> ScrapeResult:
        """Make one pass over a statistics feed.

        Args:
            lines: The feed, one ``key=value`` statistic per line

        Returns:
            The resolved samples and the response time histogram.

        Raises:
            FormatError: on the first malformed line; nothing is returned for
                that feed.
        """
        samples: List[Sample] = []
        histogram = HistogramAccumulator()
        ignored = 0

        for line in lines:
            key, value = parse_line(line)
            sample = resolve(self.catalog, key, value)
            if sample is not None:
                samples.append(sample)
            if not histogram.add(key, value) and sample is None:
                ignored += 1

        logger.debug("Parsed %d sample(s), %d histogram observation(s), ignored %d statistic(s)",
                     len(samples), histogram.count, ignored)
        return ScrapeResult(samples=samples, histogram=histogram.finish())
