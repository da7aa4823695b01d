# MIT License
# Copyright (c) 2025 Hashborn

"""
Prometheus Metrics Exporter

Metrics:
- Requests per query operation and outcome
- Query latency
- Number of delegations scanned by aggregate queries
"""

from prometheus_client import Counter, Histogram, CollectorRegistry
from contextlib import contextmanager
import time

# Create registry for metrics
metrics_registry = CollectorRegistry()

requests_total = Counter(
    'stakingapi_requests_total',
    'Total number of query requests',
    ['operation', 'outcome'],
    registry=metrics_registry
)

request_duration_seconds = Histogram(
    'stakingapi_request_duration_seconds',
    'Time spent answering a query',
    ['operation'],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2.5],
    registry=metrics_registry
)

delegations_scanned = Histogram(
    'stakingapi_delegations_scanned',
    'Delegations read from storage per query',
    ['operation'],
    buckets=[0, 1, 10, 50, 100, 500, 1000, 5000, 10000],
    registry=metrics_registry
)


@contextmanager
def track_request(operation: str):
    """Times a query and counts it under 'ok' or the raised error's class name."""
    start = time.monotonic()
    outcome = "ok"
    try:
        yield
    except Exception as e:
        outcome = type(e).__name__
        raise
    finally:
        request_duration_seconds.labels(operation=operation).observe(time.monotonic() - start)
        requests_total.labels(operation=operation, outcome=outcome).inc()


def observe_scanned(operation: str, count: int):
    delegations_scanned.labels(operation=operation).observe(count)
