"""Pytest bootstrap ensuring the in-repo unbound_exporter package is imported."""

import os
import sys

import pytest

REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if REPO_ROOT not in sys.path:
    # Prepend so it wins over any site-packages installation
    sys.path.insert(0, REPO_ROOT)

from unbound_exporter.catalog import MetricCatalog  # noqa: E402

STATS_FILE = os.path.join(os.path.dirname(__file__), 'data', 'unbound_stats.txt')


@pytest.fixture(scope='session')
def catalog():
    return MetricCatalog.default()


@pytest.fixture
def stats_file():
    return STATS_FILE


@pytest.fixture
def stats_lines():
    with open(STATS_FILE, 'r', encoding='utf-8') as f:
        return f.read().splitlines()


class StaticSource:
    """Statistics source returning fixed lines, or raising a given error."""

    def __init__(self, lines=None, error=None):
        self.lines = lines or []
        self.error = error
        self.calls = 0

    def read_stats(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.lines)


@pytest.fixture
def static_source():
    return StaticSource
