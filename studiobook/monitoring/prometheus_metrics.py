"""
Prometheus metrics for the studio booking core.

Service timings come from the @measure_operation decorator; lock and conflict
counters are incremented directly by the code paths that produce them.
"""

from threading import Lock
from time import monotonic
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Create a custom registry to avoid conflicts with default metrics
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "studiobook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "studiobook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "studiobook_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

booking_lock_total = Counter(
    "studiobook_booking_lock_total",
    "Resource lock acquire/release outcomes",
    ["action", "result"],  # acquire|release, success|blocked|timeout|error|redis_unavailable
    registry=REGISTRY,
)

booking_conflicts_total = Counter(
    "studiobook_booking_conflicts_total",
    "Rejected booking writes by conflict kind",
    ["kind"],  # room | equipment | store
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

    _cache_lock: Lock = Lock()
    _cache_payload: Optional[bytes] = None
    _cache_ts: Optional[float] = None
    _cache_ttl_seconds: float = 1.0

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Record service operation metrics from @measure_operation decorator.

        Args:
            service: Service name (e.g., 'BookingService')
            operation: Operation/method name (e.g., 'create_booking')
            duration: Operation duration in seconds
            status: Operation status ('success' or 'error')
            error_type: Type of error if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()

        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_booking_lock(action: str, result: str) -> None:
        booking_lock_total.labels(action=action, result=result).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def record_booking_conflict(kind: str) -> None:
        booking_conflicts_total.labels(kind=kind).inc()
        PrometheusMetrics._invalidate_cache()

    @staticmethod
    def get_metrics() -> bytes:
        """
        Generate Prometheus metrics in exposition format.

        Returns:
            Metrics data in Prometheus text format
        """
        now = monotonic()
        with PrometheusMetrics._cache_lock:
            payload = PrometheusMetrics._cache_payload
            ts = PrometheusMetrics._cache_ts
            if payload is not None and ts is not None:
                if now - ts < PrometheusMetrics._cache_ttl_seconds:
                    return payload
            payload = generate_latest(REGISTRY)
            PrometheusMetrics._cache_payload = payload
            PrometheusMetrics._cache_ts = now
            return payload

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST

    @staticmethod
    def _invalidate_cache() -> None:
        with PrometheusMetrics._cache_lock:
            PrometheusMetrics._cache_payload = None
            PrometheusMetrics._cache_ts = None


prometheus_metrics = PrometheusMetrics()
