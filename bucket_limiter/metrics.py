"""
Prometheus metrics for limiter calls.
"""

import time
from contextlib import contextmanager
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Histogram

OUTCOME_ADMITTED = "admitted"
OUTCOME_DENIED = "denied"
OUTCOME_BAD_ARGUMENT = "bad_argument"
OUTCOME_STORE_ERROR = "store_error"


class LimiterMetrics:
    """Counters and latency histogram for one limiter.

    Metrics are only exported when a registry is given; without one they are
    still updated but never registered, so several limiters can coexist in one
    process.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry

        self.consume_total = Counter(
            "limiter_consume_total",
            "Total consume calls by outcome",
            ["outcome"],
            registry=registry
        )

        self.consume_duration_seconds = Histogram(
            "limiter_consume_duration_seconds",
            "Duration of consume calls against the store in seconds",
            registry=registry
        )

        self.read_errors_total = Counter(
            "limiter_read_errors_total",
            "Total failed bucket reads",
            ["operation"],
            registry=registry
        )

    def record_outcome(self, outcome: str):
        """Count one consume call."""
        self.consume_total.labels(outcome=outcome).inc()

    def record_read_error(self, operation: str):
        """Count a read that failed and was reported as missing."""
        self.read_errors_total.labels(operation=operation).inc()

    @contextmanager
    def time_store_call(self):
        """Observe the wall time of the wrapped store call."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.consume_duration_seconds.observe(time.perf_counter() - start)
