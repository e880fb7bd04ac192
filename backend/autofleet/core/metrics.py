"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, unavailable, invalid, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_transitions = Counter(
    'booking_transitions_total',
    'Booking status transitions',
    ['from_status', 'to_status']
)

booking_price_mismatch = Counter(
    'booking_price_mismatch_total',
    'Bookings whose client price differs from the computed price'
)

# Payment metrics
payment_verifications = Counter(
    'payment_verifications_total',
    'Payment gateway verifications',
    ['result']  # verified, rejected, error
)

# Notification metrics
notifications = Counter(
    'notifications_total',
    'Domain event deliveries to the notification dispatcher',
    ['result']  # delivered, failed, dropped
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, unavailable, invalid, error"""
    booking_attempts.labels(status=status).inc()


def record_transition(from_status: str, to_status: str):
    booking_transitions.labels(from_status=from_status, to_status=to_status).inc()


def record_payment_verification(result: str):
    payment_verifications.labels(result=result).inc()


def record_notification(result: str):
    notifications.labels(result=result).inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
