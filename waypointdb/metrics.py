"""Prometheus metrics collection and export.

This module provides Prometheus instrumentation for the WaypointDB store,
covering bucket writes, item and achievement activity, auto-link lookup
latency, and migration runs.

Metric Types:
    Counters (always increase):
        - store_writes_total: Bucket writes by bucket and status
        - capacity_errors_total: Writes rejected because the medium is full
        - item_operations_total: Item repository operations by operation
        - achievement_operations_total: Ledger operations by operation
        - migration_runs_total: Migration attempts by final status
        - migration_conflicts_total: Detected conflicts by conflict type

    Gauges (can go up or down):
        - text_index_entries: Distinct normalized texts in the auto-link index
        - store_bytes: Bytes held by each bucket after the last write

    Histograms (track distributions):
        - autolink_lookup_duration_seconds: Auto-link group lookup latency
        - migration_duration_seconds: End-to-end migration duration

Usage:
    ```python
    from waypointdb.metrics import item_operations_total

    item_operations_total.labels(operation="create").inc()
    ```

Every helper below is a no-op when ``settings.metrics_enabled`` is false.
"""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

from waypointdb.config import settings
from waypointdb.logging import logger

# Custom registry; default process/platform collectors are not included
registry = CollectorRegistry()

# Latency buckets (in seconds), tuned around the 50ms auto-link target
LOOKUP_LATENCY_BUCKETS = (
    0.0005,  # 0.5ms
    0.001,   # 1ms
    0.005,   # 5ms
    0.01,    # 10ms
    0.025,   # 25ms
    0.05,    # 50ms
    0.1,     # 100ms
    0.25,    # 250ms
)

MIGRATION_LATENCY_BUCKETS = (
    0.01,
    0.05,
    0.1,
    0.5,
    1.0,
    5.0,
    10.0,
    30.0,
)


# ========== COUNTER METRICS (always increase) ==========

store_writes_total = Counter(
    "store_writes_total",
    "Total number of bucket writes",
    labelnames=["bucket", "status"],
    registry=registry,
)
"""Counter for bucket writes.

Labels:
    bucket: Logical bucket (items, achievements, daily_points, user, migration_status)
    status: "success" or "error"
"""

capacity_errors_total = Counter(
    "capacity_errors_total",
    "Total number of writes rejected for lack of capacity",
    labelnames=["bucket"],
    registry=registry,
)

item_operations_total = Counter(
    "item_operations_total",
    "Total number of item repository operations",
    labelnames=["operation"],
    registry=registry,
)
"""Counter for item operations.

Labels:
    operation: create, update, soft_delete, restore, hard_delete
"""

achievement_operations_total = Counter(
    "achievement_operations_total",
    "Total number of achievement ledger operations",
    labelnames=["operation"],
    registry=registry,
)

migration_runs_total = Counter(
    "migration_runs_total",
    "Total number of migration attempts",
    labelnames=["status"],
    registry=registry,
)

migration_conflicts_total = Counter(
    "migration_conflicts_total",
    "Total number of conflicts detected during migration",
    labelnames=["conflict_type"],
    registry=registry,
)


# ========== GAUGE METRICS (can go up or down) ==========

text_index_entries = Gauge(
    "text_index_entries",
    "Number of distinct normalized texts held by the auto-link index",
    registry=registry,
)

store_bytes = Gauge(
    "store_bytes",
    "Serialized size of each bucket after its last write",
    labelnames=["bucket"],
    registry=registry,
)


# ========== HISTOGRAM METRICS (track distributions) ==========

autolink_lookup_duration_seconds = Histogram(
    "autolink_lookup_duration_seconds",
    "Duration of auto-link group lookups in seconds",
    buckets=LOOKUP_LATENCY_BUCKETS,
    registry=registry,
)

migration_duration_seconds = Histogram(
    "migration_duration_seconds",
    "Duration of migration runs in seconds",
    labelnames=["status"],
    buckets=MIGRATION_LATENCY_BUCKETS,
    registry=registry,
)


# ========== HELPER FUNCTIONS ==========


def record_store_write(bucket: str, status: str, size: int | None = None) -> None:
    """Record a bucket write and, on success, the bucket's new size."""
    if not settings.metrics_enabled:
        return
    store_writes_total.labels(bucket=bucket, status=status).inc()
    if size is not None:
        store_bytes.labels(bucket=bucket).set(size)


def record_capacity_error(bucket: str) -> None:
    """Record a write rejected for lack of capacity."""
    if settings.metrics_enabled:
        capacity_errors_total.labels(bucket=bucket).inc()


def record_item_operation(operation: str, count: int = 1) -> None:
    """Record ``count`` item repository operations."""
    if settings.metrics_enabled and count > 0:
        item_operations_total.labels(operation=operation).inc(count)


def record_achievement_operation(operation: str, count: int = 1) -> None:
    """Record ``count`` achievement ledger operations."""
    if settings.metrics_enabled and count > 0:
        achievement_operations_total.labels(operation=operation).inc(count)


def observe_autolink_lookup(seconds: float, index_size: int) -> None:
    """Record an auto-link lookup duration and the index size it ran against."""
    if not settings.metrics_enabled:
        return
    autolink_lookup_duration_seconds.observe(seconds)
    text_index_entries.set(index_size)


def record_migration(status: str, seconds: float, conflict_types: list[str] | None = None) -> None:
    """Record a finished migration attempt.

    Args:
        status: Final status ("completed" or "failed")
        seconds: Wall-clock duration of the attempt
        conflict_types: Type of every detected conflict
    """
    if not settings.metrics_enabled:
        return
    migration_runs_total.labels(status=status).inc()
    migration_duration_seconds.labels(status=status).observe(seconds)
    for conflict_type in conflict_types or []:
        migration_conflicts_total.labels(conflict_type=conflict_type).inc()


def generate_metrics_output() -> bytes:
    """Generate Prometheus metrics output in text exposition format.

    Note:
        This uses the custom registry, so only WaypointDB metrics are included.
    """
    return generate_latest(registry)


def initialize_metrics() -> None:
    """Log the metrics system state at application startup."""
    logger.info(
        "Prometheus metrics initialized",
        metrics_enabled=settings.metrics_enabled,
        registry_type="custom",
    )


__all__ = [
    # Registry
    "registry",
    # Counters
    "store_writes_total",
    "capacity_errors_total",
    "item_operations_total",
    "achievement_operations_total",
    "migration_runs_total",
    "migration_conflicts_total",
    # Gauges
    "text_index_entries",
    "store_bytes",
    # Histograms
    "autolink_lookup_duration_seconds",
    "migration_duration_seconds",
    # Helpers
    "record_store_write",
    "record_capacity_error",
    "record_item_operation",
    "record_achievement_operation",
    "observe_autolink_lookup",
    "record_migration",
    "generate_metrics_output",
    "initialize_metrics",
    # Bucket definitions
    "LOOKUP_LATENCY_BUCKETS",
    "MIGRATION_LATENCY_BUCKETS",
]
