"""Line parsing, metric resolution and full scrape passes."""

import random

import pytest

from unbound_exporter.exceptions import FormatError
from unbound_exporter.parser import StatsParser, parse_line, resolve


def test_parse_line_splits_key_and_value():
    assert parse_line('num.query.tcp=42\n') == ('num.query.tcp', '42')
    assert parse_line('time.now=1700000000.123456\r\n') == ('time.now', '1700000000.123456')


@pytest.mark.parametrize('line', ['garbage', '', '=1', 'num.query.tcp=', 'a=b=c'])
def test_parse_line_rejects_malformed_lines(line):
    with pytest.raises(FormatError) as excinfo:
        parse_line(line)
    assert repr(line) in str(excinfo.value)


def test_resolve_counter_without_labels(catalog):
    sample = resolve(catalog, 'num.query.tcp', '42')
    assert sample.definition.name == 'query_tcp_total'
    assert sample.label_values == ()
    assert sample.value == 42


def test_resolve_extracts_thread_label(catalog):
    sample = resolve(catalog, 'thread0.num.cachehits', '7')
    assert sample.definition.name == 'cache_hits_total'
    assert dict(zip(sample.definition.label_names, sample.label_values)) == {'thread': '0'}
    assert sample.value == 7


def test_resolve_gauge_keeps_fraction(catalog):
    sample = resolve(catalog, 'time.now', '1700000000.123456')
    assert sample.value == pytest.approx(1700000000.123456)


def test_resolve_ignores_unknown_key(catalog):
    assert resolve(catalog, 'foo.bar', 'not-a-number') is None


def test_resolve_rejects_non_numeric_value(catalog):
    with pytest.raises(FormatError) as excinfo:
        resolve(catalog, 'thread0.num.queries', 'abc')
    assert 'thread0.num.queries' in str(excinfo.value)
    assert "'abc'" in str(excinfo.value)


def test_parse_sample_file(catalog, stats_lines):
    result = StatsParser(catalog).parse(stats_lines)
    by_key = {
        (s.definition.name, s.label_values): s.value for s in result.samples
    }
    assert by_key[('queries_total', ('0',))] == 120
    assert by_key[('queries_total', ('1',))] == 80
    assert by_key[('memory_caches_bytes', ('rrset',))] == 123456
    assert by_key[('query_types_total', ('AAAA',))] == 50
    assert by_key[('answer_rcodes_total', ('nodata',))] == 5
    assert by_key[('time_elapsed_seconds', ())] == pytest.approx(60.25)
    # total.* and averages are not exported
    assert not any(s.definition.name == 'queries_total' and s.label_values == ('total',)
                   for s in result.samples)
    assert result.histogram.count == 120


def test_unknown_keys_do_not_stop_the_scrape(catalog):
    result = StatsParser(catalog).parse(['foo.bar=1', 'num.query.tcp=3', 'thread0.num.cachehits=7'])
    assert [s.definition.name for s in result.samples] == ['query_tcp_total', 'cache_hits_total']


def test_malformed_line_aborts_the_scrape(catalog):
    parser = StatsParser(catalog)
    with pytest.raises(FormatError, match='garbage'):
        parser.parse(['num.query.tcp=3', 'garbage', 'thread0.num.cachehits=7'])


def test_bad_histogram_count_aborts_the_scrape(catalog):
    with pytest.raises(FormatError):
        StatsParser(catalog).parse(['num.query.tcp=3', 'histogram.000000.000000.to.000000.000001=x'])


def test_empty_feed_yields_empty_histogram(catalog):
    result = StatsParser(catalog).parse([])
    assert result.samples == []
    assert result.histogram.count == 0
    assert result.histogram.sum == 0
    assert result.histogram.buckets == ()


def test_each_parse_starts_fresh(catalog):
    parser = StatsParser(catalog)
    lines = ['histogram.000000.000000.to.000000.000001=4']
    parser.parse(lines)
    assert parser.parse(lines).histogram.count == 4


def test_line_order_does_not_change_histogram(catalog, stats_lines):
    parser = StatsParser(catalog)
    expected = parser.parse(stats_lines).histogram
    shuffled = list(stats_lines)
    random.Random(7).shuffle(shuffled)
    result = parser.parse(shuffled).histogram
    assert result.buckets == expected.buckets
    assert result.count == expected.count
    assert result.sum == pytest.approx(expected.sum)


@pytest.mark.parametrize('value', [' 42', '42 ', '42\t', '1_000', '0x10', '', '4 2'])
def test_resolve_rejects_loosely_formatted_numbers(catalog, value):
    with pytest.raises(FormatError):
        resolve(catalog, 'num.query.tcp', value)


@pytest.mark.parametrize('value,expected', [
    ('42', 42.0),
    ('-0.5', -0.5),
    ('.5', 0.5),
    ('7.', 7.0),
    ('1e3', 1000.0),
    ('2.5E-1', 0.25),
])
def test_resolve_accepts_plain_numbers(catalog, value, expected):
    assert resolve(catalog, 'num.query.tcp', value).value == expected
