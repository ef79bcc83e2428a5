"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'ticket_booking_attempts_total',
    'Total ticket booking attempts',
    ['outcome']  # success, or a FailureKind value
)

booking_latency = Histogram(
    'ticket_booking_latency_seconds',
    'Ticket booking latency, lock wait included',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0]
)

tickets_booked = Counter(
    'tickets_booked_total',
    'Tickets successfully booked'
)

# Row lock metrics
row_lock_wait = Histogram(
    'event_row_lock_wait_seconds',
    'Time spent waiting for an in-process event row lock',
    buckets=[0.0001, 0.001, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0]
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set/invalidate, hit/miss/error/ok
)


def metrics_endpoint() -> Response:
    """Render the default registry in Prometheus text format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_booking_attempt(outcome: str):
    """Record booking attempt. Outcome: success or a failure kind."""
    booking_attempts.labels(outcome=outcome).inc()


def record_cache_operation(operation: str, result: str):
    cache_operations.labels(operation=operation, result=result).inc()
