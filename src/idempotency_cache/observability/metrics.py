"""Prometheus metrics for the idempotency cache.

Metrics include:

- Request counters by outcome (invalid_key, replay, new, fail_open)
- Execution time histogram for fresh executions
- Storage error counters by operation
- Cleanup operation tracking

Examples:
    >>> record_request("replay", 201)
    >>> record_storage_error("write")
    >>> record_cleanup(records_removed=42)
"""

from prometheus_client import Counter, Histogram

# Labels: result (invalid_key, replay, new, fail_open), status_code
requests_total = Counter(
    "idempotency_requests_total",
    "Total number of requests seen by the idempotency middleware",
    ["result", "status_code"],
)

# Only tracks fresh executions, not replays
execution_time_ms = Histogram(
    "idempotency_execution_time_ms",
    "Downstream execution time in milliseconds (fresh executions only)",
    buckets=[10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

# Labels: operation (read, write, cleanup, deserialize)
storage_errors_total = Counter(
    "idempotency_storage_errors_total",
    "Storage failures absorbed by the idempotency cache",
    ["operation"],
)

cleanup_operations = Counter(
    "idempotency_cleanup_operations_total",
    "Total number of cleanup operations performed",
)

cleanup_records_removed = Counter(
    "idempotency_cleanup_records_removed_total",
    "Total number of expired records removed by cleanup",
)


def record_request(result: str, status_code: int) -> None:
    """Record a processed request.

    Args:
        result: The outcome (invalid_key, replay, new, fail_open)
        status_code: HTTP status code of the response
    """
    requests_total.labels(result=result, status_code=str(status_code)).inc()


def record_execution_time(exec_time_ms: int) -> None:
    """Record downstream execution time. Not called for replays."""
    execution_time_ms.observe(exec_time_ms)


def record_storage_error(operation: str) -> None:
    """Record a storage failure that was absorbed (fail open)."""
    storage_errors_total.labels(operation=operation).inc()


def record_cleanup(records_removed: int) -> None:
    """Record a cleanup operation.

    Args:
        records_removed: Number of expired records removed
    """
    cleanup_operations.inc()
    cleanup_records_removed.inc(records_removed)
