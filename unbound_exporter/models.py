"""Data models for Unbound statistics."""

import enum
import re
from dataclasses import dataclass, field
from typing import List, Tuple


class ValueKind(enum.Enum):
    """How a statistic behaves over time."""
    COUNTER = 'counter'
    GAUGE = 'gauge'


@dataclass(frozen=True)
class MetricDefinition:
    """Binds a statistics key pattern to a public metric."""
    name: str
    description: str
    value_kind: ValueKind
    label_names: Tuple[str, ...]
    pattern: re.Pattern  # one capture group per label name


@dataclass(frozen=True)
class Sample:
    """A single observation resolved from one statistics line."""
    definition: MetricDefinition
    label_values: Tuple[str, ...]
    value: float


@dataclass(frozen=True)
class HistogramSample:
    """Cumulative response time histogram for one scrape."""
    count: int
    sum: float
    buckets: Tuple[Tuple[float, int], ...]  # (upper_bound, cumulative_count), ascending


@dataclass
class ScrapeResult:
    """Everything produced by one pass over a statistics feed."""
    samples: List[Sample] = field(default_factory=list)
    histogram: HistogramSample = field(default_factory=lambda: HistogramSample(0, 0.0, ()))
