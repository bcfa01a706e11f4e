"""
Prometheus metrics module for the booking engine.

Service timings come from the @measure_operation decorator on service
methods; domain counters are incremented by the booking and check-in
services once their transaction has committed.
"""

from typing import Optional, cast

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
    "flightdesk_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

service_operations_total = Counter(
    "flightdesk_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

errors_total = Counter(
    "flightdesk_errors_total",
    "Total number of errors",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)

# Domain-specific custom counters
bookings_created_total = Counter(
    "flightdesk_bookings_created_total",
    "Total number of bookings created",
    ["booking_type", "source"],  # source: standard | trial
    registry=REGISTRY,
)

booking_conflicts_total = Counter(
    "flightdesk_booking_conflicts_total",
    "Booking requests rejected because a resource was already committed",
    ["reason"],  # availability | roster | store
    registry=REGISTRY,
)

checkins_approved_total = Counter(
    "flightdesk_checkins_approved_total",
    "Total number of approved booking check-ins",
    registry=REGISTRY,
)

checkin_corrections_total = Counter(
    "flightdesk_checkin_corrections_total",
    "Total number of post-approval meter corrections",
    ["updated_current_meters"],
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

    @staticmethod
    def get_metrics() -> bytes:
        """Generate Prometheus metrics in exposition format."""
        return cast(bytes, generate_latest(REGISTRY))

    @staticmethod
    def get_content_type() -> str:
        """Get the content type for Prometheus metrics."""
        return cast(str, CONTENT_TYPE_LATEST)

    # Domain helpers
    @staticmethod
    def inc_booking_created(booking_type: str, source: str = "standard") -> None:
        bookings_created_total.labels(booking_type=booking_type, source=source).inc()

    @staticmethod
    def inc_booking_conflict(reason: str) -> None:
        booking_conflicts_total.labels(reason=reason).inc()

    @staticmethod
    def inc_checkin_approved() -> None:
        checkins_approved_total.inc()

    @staticmethod
    def inc_checkin_correction(updated_current_meters: bool) -> None:
        checkin_corrections_total.labels(
            updated_current_meters="true" if updated_current_meters else "false"
        ).inc()


# Singleton instance
prometheus_metrics = PrometheusMetrics()
