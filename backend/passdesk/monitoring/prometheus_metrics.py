"""
Prometheus metrics for the PassDesk engine.

Service timings come from @measure_operation; the domain counters below
track lock contention, reservation outcomes and checkouts.
"""

from threading import Lock
from time import monotonic
from typing import Callable, Optional, cast

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Private registry; module reloads in tests would otherwise register twice
REGISTRY = CollectorRegistry()

OPERATION_BUCKETS = (0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)

operation_seconds = Histogram(
    "passdesk_service_operation_duration_seconds",
    "Wall time of engine service operations",
    ["service", "operation"],
    buckets=OPERATION_BUCKETS,
    registry=REGISTRY,
)
operation_calls = Counter(
    "passdesk_service_operations_total",
    "Engine service operations by result",
    ["service", "operation", "status"],
    registry=REGISTRY,
)
operation_errors = Counter(
    "passdesk_errors_total",
    "Failed engine service operations by exception class",
    ["service", "operation", "error_type"],
    registry=REGISTRY,
)
lock_events = Counter(
    "passdesk_booking_lock_total",
    "Keyed lock acquire/release outcomes",
    ["action", "outcome"],
    registry=REGISTRY,
)
reservation_events = Counter(
    "passdesk_reservation_events_total",
    "Reservation add/remove/expire outcomes",
    ["event", "outcome"],
    registry=REGISTRY,
)
checkout_attempts = Counter(
    "passdesk_checkouts_total",
    "Checkouts by final status",
    ["status"],
    registry=REGISTRY,
)
checkout_amount = Counter(
    "passdesk_checkout_amount_total",
    "Revenue booked by successful checkouts",
    registry=REGISTRY,
)


class _ExpositionCache:
    """Holds the last rendered scrape for up to ``ttl`` seconds."""

    def __init__(self, render: Callable[[], bytes], ttl: float = 1.0):
        self._render = render
        self._ttl = ttl
        self._lock = Lock()
        self._payload: Optional[bytes] = None
        self._rendered_at = 0.0

    def get(self) -> bytes:
        with self._lock:
            now = monotonic()
            if self._payload is None or now - self._rendered_at > self._ttl:
                self._payload = self._render()
                self._rendered_at = now
            return self._payload

    def clear(self) -> None:
        with self._lock:
            self._payload = None


class PrometheusMetrics:
    """Recording helpers plus the cached text exposition."""

    def __init__(self) -> None:
        self._cache = _ExpositionCache(lambda: cast(bytes, generate_latest(REGISTRY)))

    def record_service_operation(
        self,
        service: str,
        operation: str,
        duration: float,
        status: str = "success",
        error_type: Optional[str] = None,
    ) -> None:
        """
        Args:
            service: Service class name, e.g. 'CheckoutService'
            operation: Name given to @measure_operation
            duration: Seconds spent
            status: 'success' or 'error'
            error_type: Exception class name for failures
        """
        operation_seconds.labels(service=service, operation=operation).observe(duration)
        operation_calls.labels(service=service, operation=operation, status=status).inc()
        if status == "error" and error_type:
            operation_errors.labels(
                service=service, operation=operation, error_type=error_type
            ).inc()
        self._cache.clear()

    def record_booking_lock(self, action: str, outcome: str) -> None:
        # action: acquire|release; outcome: success|blocked|not_found
        lock_events.labels(action=action, outcome=outcome).inc()
        self._cache.clear()

    def record_reservation_event(self, event: str, outcome: str) -> None:
        reservation_events.labels(event=event, outcome=outcome).inc()
        self._cache.clear()

    def record_checkout(self, status: str, amount: float = 0.0) -> None:
        checkout_attempts.labels(status=status).inc()
        if status == "success" and amount > 0:
            checkout_amount.inc(amount)
        self._cache.clear()

    def get_metrics(self) -> bytes:
        return self._cache.get()

    def get_content_type(self) -> str:
        return cast(str, CONTENT_TYPE_LATEST)


prometheus_metrics = PrometheusMetrics()
