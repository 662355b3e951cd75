"""Catalog of Unbound statistics recognised by the exporter."""

import re
from typing import Iterable, Iterator, Optional, Sequence, Tuple

from .exceptions import CatalogError
from .models import MetricDefinition, ValueKind

COUNTER = ValueKind.COUNTER
GAUGE = ValueKind.GAUGE

# (name, description, kind, labels, pattern); first matching pattern wins
METRIC_TABLE = (
    ('answer_rcodes_total',
     'Total number of answers to queries, from cache or from recursion, by response code.',
     COUNTER, ('rcode',), r'^num\.answer\.rcode\.(\w+)$'),
    ('answers_bogus',
     'Total number of answers that were bogus.',
     COUNTER, (), r'^num\.answer\.bogus$'),
    ('answers_secure_total',
     'Total number of answers that were secure.',
     COUNTER, (), r'^num\.answer\.secure$'),
    ('cache_hits_total',
     'Total number of queries that were successfully answered using a cache lookup.',
     COUNTER, ('thread',), r'^thread(\d+)\.num\.cachehits$'),
    ('cache_misses_total',
     'Total number of cache queries that needed recursive processing.',
     COUNTER, ('thread',), r'^thread(\d+)\.num\.cachemiss$'),
    ('memory_caches_bytes',
     'Memory in bytes in use by caches.',
     GAUGE, ('cache',), r'^mem\.cache\.(\w+)$'),
    ('memory_modules_bytes',
     'Memory in bytes in use by modules.',
     GAUGE, ('module',), r'^mem\.mod\.(\w+)$'),
    ('memory_sbrk_bytes',
     'Memory in bytes allocated through sbrk.',
     GAUGE, (), r'^mem\.total\.sbrk$'),
    ('prefetches_total',
     'Total number of cache prefetches performed.',
     COUNTER, ('thread',), r'^thread(\d+)\.num\.prefetch$'),
    ('queries_total',
     'Total number of queries received.',
     COUNTER, ('thread',), r'^thread(\d+)\.num\.queries$'),
    ('query_classes_total',
     'Total number of queries with a given query class.',
     COUNTER, ('class',), r'^num\.query\.class\.(\w+)$'),
    ('query_flags_total',
     'Total number of queries that had a given flag set in the header.',
     COUNTER, ('flag',), r'^num\.query\.flags\.(\w+)$'),
    ('query_ipv6_total',
     'Total number of queries that were made using IPv6 towards the Unbound server.',
     COUNTER, (), r'^num\.query\.ipv6$'),
    ('query_opcodes_total',
     'Total number of queries with a given query opcode.',
     COUNTER, ('opcode',), r'^num\.query\.opcode\.(\w+)$'),
    ('query_edns_DO_total',
     'Total number of queries that had an EDNS OPT record with the DO (DNSSEC OK) bit set present.',
     COUNTER, (), r'^num\.query\.edns\.DO$'),
    ('query_edns_present_total',
     'Total number of queries that had an EDNS OPT record present.',
     COUNTER, (), r'^num\.query\.edns\.present$'),
    ('query_tcp_total',
     'Total number of queries that were made using TCP towards the Unbound server.',
     COUNTER, (), r'^num\.query\.tcp$'),
    ('query_types_total',
     'Total number of queries with a given query type.',
     COUNTER, ('type',), r'^num\.query\.type\.(\w+)$'),
    ('request_list_current_all',
     'Current size of the request list, including internally generated queries.',
     GAUGE, ('thread',), r'^thread(\d+)\.requestlist\.current\.all$'),
    ('request_list_current_user',
     'Current size of the request list, only counting the requests from client queries.',
     GAUGE, ('thread',), r'^thread(\d+)\.requestlist\.current\.user$'),
    ('request_list_exceeded_total',
     'Number of queries that were dropped because the request list was full.',
     COUNTER, ('thread',), r'^thread(\d+)\.requestlist\.exceeded$'),
    ('request_list_overwritten_total',
     'Total number of requests in the request list that were overwritten by newer entries.',
     COUNTER, ('thread',), r'^thread(\d+)\.requestlist\.overwritten$'),
    ('recursive_replies_total',
     'Total number of replies sent to queries that needed recursive processing.',
     COUNTER, ('thread',), r'^thread(\d+)\.num\.recursivereplies$'),
    ('rrset_bogus_total',
     'Total number of rrsets marked bogus by the validator.',
     COUNTER, (), r'^num\.rrset\.bogus$'),
    ('time_elapsed_seconds',
     'Time since last statistics printout in seconds.',
     COUNTER, (), r'^time\.elapsed$'),
    ('time_now_seconds',
     'Current time in seconds since 1970.',
     GAUGE, (), r'^time\.now$'),
    ('time_up_seconds_total',
     'Uptime since server boot in seconds.',
     COUNTER, (), r'^time\.up$'),
    ('unwanted_queries_total',
     'Total number of queries that were refused or dropped because they failed the access control settings.',
     COUNTER, (), r'^unwanted\.queries$'),
    ('unwanted_replies_total',
     'Total number of replies that were unwanted or unsolicited.',
     COUNTER, (), r'^unwanted\.replies$'),
)

# Lower and upper bound of a latency bucket, in seconds
HISTOGRAM_PATTERN = re.compile(r'^histogram\.(\d+\.\d+)\.to\.(\d+\.\d+)$', re.ASCII)


def new_definition(name: str, description: str, value_kind: ValueKind,
                   label_names: Sequence[str], pattern: str) -> MetricDefinition:
    """Compile a catalog entry, checking that every label has a capture group.

    Raises:
        CatalogError: if the pattern does not compile or its group count differs
            from the number of labels.
    """
    try:
        compiled = re.compile(pattern, re.ASCII)
    except re.error as e:
        raise CatalogError(f"Invalid pattern {pattern!r} for metric {name}: {e}") from e
    if compiled.groups != len(label_names):
        raise CatalogError(
            f"Metric {name} declares {len(label_names)} label(s) but pattern "
            f"{pattern!r} has {compiled.groups} capture group(s)"
        )
    return MetricDefinition(
        name=name,
        description=description,
        value_kind=value_kind,
        label_names=tuple(label_names),
        pattern=compiled,
    )


UP_DEFINITION = new_definition(
    'up', "Whether scraping Unbound's metrics was successful.", GAUGE, (), r'(?!)')

HISTOGRAM_NAME = 'response_time_seconds'
HISTOGRAM_DESCRIPTION = 'Query response time in seconds.'


class MetricCatalog:
    """Ordered, read-only collection of metric definitions.

    A catalog is built once at startup and handed to every scrape. It holds no
    mutable state, so concurrent scrapes may share it.
    """

    __slots__ = ('_definitions',)

    def __init__(self, definitions: Iterable[MetricDefinition]):
        definitions = tuple(definitions)
        seen = set()
        for definition in definitions:
            if definition.name in seen:
                raise CatalogError(f"Duplicate metric name in catalog: {definition.name}")
            if definition.pattern.groups != len(definition.label_names):
                raise CatalogError(
                    f"Metric {definition.name} declares {len(definition.label_names)} "
                    f"label(s) but its pattern has {definition.pattern.groups} capture group(s)"
                )
            seen.add(definition.name)
        object.__setattr__(self, '_definitions', definitions)

    def __setattr__(self, name, value):
        raise AttributeError('MetricCatalog is immutable')

    @classmethod
    def from_table(cls, table=METRIC_TABLE) -> 'MetricCatalog':
        return cls(new_definition(*entry) for entry in table)

    @classmethod
    def default(cls) -> 'MetricCatalog':
        """Catalog of every statistic the exporter knows about."""
        return cls.from_table(METRIC_TABLE)

    @property
    def definitions(self) -> Tuple[MetricDefinition, ...]:
        return self._definitions

    def __iter__(self) -> Iterator[MetricDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def match(self, key: str) -> Optional[Tuple[MetricDefinition, Tuple[str, ...]]]:
        """Return the first definition matching key with its captured label values."""
        for definition in self._definitions:
            match = definition.pattern.match(key)
            if match:
                return definition, match.groups()
        return None
