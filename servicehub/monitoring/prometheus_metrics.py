"""
Prometheus metrics module for servicehub.

Metrics for the payment pipeline, the retry and cache interceptors and
measured service operations. A private registry keeps them apart from any
default process collectors of the hosting application.
"""

from typing import Dict, Optional, Protocol

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

payments_processed_total = Counter(
    "servicehub_payments_processed_total",
    "Total number of payments run through a payment processor",
    ["currency", "processor", "success", "amount_range"],
    registry=REGISTRY,
)

payment_amount = Gauge(
    "servicehub_payment_amount",
    "Amount of the last successful payment",
    ["currency", "processor"],
    registry=REGISTRY,
)

service_operation_duration_seconds = Histogram(
    "servicehub_service_operation_duration_seconds",
    "Service operation duration in seconds",
    ["service", "operation"],
    registry=REGISTRY,
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)

service_operations_total = Counter(
    "servicehub_service_operations_total",
    "Total number of service operations",
    ["service", "operation", "status"],
    registry=REGISTRY,
)

retry_attempts_total = Counter(
    "servicehub_retry_attempts_total",
    "Retry interceptor outcomes",
    ["operation", "outcome"],  # retried | recovered | exhausted | not_retryable
    registry=REGISTRY,
)

cache_requests_total = Counter(
    "servicehub_cache_requests_total",
    "Cache-aside lookups by result",
    ["prefix", "result"],  # hit | miss
    registry=REGISTRY,
)

cache_fallback_total = Counter(
    "servicehub_cache_fallback_total",
    "Operations served by the in-memory fallback store",
    ["operation"],  # get | set | clear
    registry=REGISTRY,
)


class MetricsSink(Protocol):
    def record_payment(
        self, *, currency: str, processor: str, success: bool, amount_range: str
    ) -> None: ...

    def record_payment_amount(self, *, currency: str, processor: str, amount: float) -> None: ...


class PrometheusMetrics:
    """Static helpers around the module-level collectors."""

    @staticmethod
    def record_payment(*, currency: str, processor: str, success: bool, amount_range: str) -> None:
        payments_processed_total.labels(
            currency=currency,
            processor=processor,
            success=str(success).lower(),
            amount_range=amount_range,
        ).inc()

    @staticmethod
    def record_payment_amount(*, currency: str, processor: str, amount: float) -> None:
        payment_amount.labels(currency=currency, processor=processor).set(amount)

    @staticmethod
    def record_service_operation(
        service: str,
        operation: str,
        duration: float,
        status: str,
    ) -> None:
        service_operation_duration_seconds.labels(service=service, operation=operation).observe(
            duration
        )
        service_operations_total.labels(service=service, operation=operation, status=status).inc()

    @staticmethod
    def record_retry(operation: str, outcome: str) -> None:
        retry_attempts_total.labels(operation=operation, outcome=outcome).inc()

    @staticmethod
    def record_cache_lookup(prefix: str, hit: bool) -> None:
        cache_requests_total.labels(prefix=prefix, result="hit" if hit else "miss").inc()

    @staticmethod
    def record_cache_fallback(operation: str) -> None:
        cache_fallback_total.labels(operation=operation).inc()

    @staticmethod
    def get_sample(name: str, labels: Optional[Dict[str, str]] = None) -> Optional[float]:
        """Read one sample value back from the registry (used by health checks and tests)."""
        return REGISTRY.get_sample_value(name, labels or {})

    @staticmethod
    def get_metrics() -> bytes:
        return generate_latest(REGISTRY)

    @staticmethod
    def get_content_type() -> str:
        return CONTENT_TYPE_LATEST


prometheus_metrics = PrometheusMetrics()
