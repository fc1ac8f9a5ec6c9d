"""
Prometheus Metrics for Observability

Tracks per-stage latency, result states and stale batch work.
"""

import time
from contextlib import contextmanager

from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    REGISTRY
)

# =============================================================================
# Metrics Definitions
# =============================================================================

# Pipeline Latency - Per Stage
isolation_stage_latency_seconds = Histogram(
    "isolation_stage_latency_seconds",
    "Time spent in each isolation stage",
    labelnames=["stage", "status"],
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 10.0]
)

# Result states (skipped / processed / fallback_original)
isolation_results_total = Counter(
    "isolation_results_total",
    "Total number of isolation results by final state",
    labelnames=["state"]
)

# Results computed for a batch that was superseded before commit
isolation_stale_results_total = Counter(
    "isolation_stale_results_total",
    "Results discarded because a newer batch generation was requested"
)

isolation_active_batches = Gauge(
    "isolation_active_batches",
    "Number of batches currently being processed"
)


# =============================================================================
# Helper Functions
# =============================================================================

@contextmanager
def track_stage_latency(stage: str):
    """
    Context manager to track stage latency.

    Usage:
        with track_stage_latency("edges"):
            # do work
    """
    start = time.perf_counter()
    status = "success"
    try:
        yield
    except Exception:
        status = "error"
        raise
    finally:
        duration = time.perf_counter() - start
        isolation_stage_latency_seconds.labels(stage=stage, status=status).observe(duration)


def record_isolation_result(state: str):
    """Record the final state of one isolation."""
    isolation_results_total.labels(state=state).inc()


def record_stale_result():
    """Record a result dropped by the generation check."""
    isolation_stale_results_total.inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest(REGISTRY)
