"""Utility functions for Unbound statistics export."""

from typing import Dict, List, Optional


def format_bound_for_label(value: float) -> str:
    """Format a bucket bound as a string for the Prometheus ``le`` label.

    Always uses decimal notation (not scientific) to match Unbound's own
    output, e.g. ``0.000001`` rather than ``1e-06``.
    """
    return f"{value:.9f}".rstrip('0').rstrip('.')


def build_fqname(namespace: str, name: str) -> str:
    """Join a namespace and a metric name the way Prometheus clients do."""
    if namespace:
        return f"{namespace}_{name}"
    return name


def prepare_headers(remote_write_headers: Optional[List[str]]) -> Dict[str, str]:
    """Prepare headers dictionary from command-line arguments."""
    headers = {}
    if remote_write_headers:
        for header in remote_write_headers:
            if '=' in header:
                key, value = header.split('=', 1)
                headers[key] = value
    return headers
