#!/usr/bin/env python3
"""
Expose Unbound statistics as Prometheus metrics.

Thin launcher for running the exporter from a checkout.
"""

import sys

from unbound_exporter.unbound_to_prometheus import main

if __name__ == '__main__':
    sys.exit(main())
