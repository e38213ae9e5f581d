"""
Prometheus metrics module for slotbook.

Exposes service operation timings recorded by @measure_operation together
with booking-specific counters: lock outcomes, booking results and
compensation failures.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Custom registry keeps tests and multiple app instances from colliding
REGISTRY = CollectorRegistry()

service_operation_duration_seconds = Histogram(
    "slotbook_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "slotbook_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "slotbook_errors_total",
    "Total number of errors by type",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

lock_acquisitions_total = Counter(
    "slotbook_lock_acquisitions_total",
    "Keyed lock acquisitions by scope and outcome",
    ["scope", "outcome"],
    registry=REGISTRY,
)

booking_outcomes_total = Counter(
    "slotbook_booking_outcomes_total",
    "Booking attempts by resulting code",
    ["outcome"],
    registry=REGISTRY,
)

compensation_failures_total = Counter(
    "slotbook_compensation_failures_total",
    "Refunds that failed while undoing a booking",
    registry=REGISTRY,
)


class PrometheusMetrics:
    """Manages Prometheus metrics collection and exposure."""

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
            service: Service name (e.g., 'ReservationScheduler')
            operation: Operation name (e.g., 'book')
            duration: Operation duration in seconds
            status: 'success' or 'error'
            error_type: Exception class name if status is 'error'
        """
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            errors_total.labels(service=service, operation=operation, error_type=error_type).inc()

    @staticmethod
    def record_lock(scope: str, outcome: str) -> None:
        lock_acquisitions_total.labels(scope=scope, outcome=outcome).inc()

    @staticmethod
    def record_booking_outcome(outcome: str) -> None:
        booking_outcomes_total.labels(outcome=outcome).inc()

    @staticmethod
    def record_compensation_failure() -> None:
        compensation_failures_total.inc()

    @staticmethod
    def get_metrics() -> bytes:
        """Generate metrics in Prometheus text exposition format."""
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
