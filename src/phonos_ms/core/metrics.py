"""
Prometheus Metrics for phonos-ms.

Metrics Exposed:
    phonos_errors_total{kind}        - Surfaced errors by sanitized message key
    phonos_requests_total{state}     - Resolved pronunciations by audio state
    phonos_jobs_total{status}        - Generation jobs by outcome
    phonos_backend_seconds{backend}  - Backend synthesis latency

Usage:
    from phonos_ms.core.metrics import metrics

    metrics.record_error("phonos-storage-error")   # kind -> phonos_storage_error
    metrics.record_request("persisted")
    metrics.observe_backend("google", 0.41)

    content, content_type = metrics.get_metrics_response()

Prometheus Scrape Config Example:
    scrape_configs:
      - job_name: 'phonos-ms'
        static_configs:
          - targets: ['localhost:8000']
        metrics_path: '/metrics'
"""
from __future__ import annotations

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

from phonos_ms.core.errors import sanitize_kind


class PhonosMetrics:
    """
    Metrics collection for the pronunciation service.

    Uses a private CollectorRegistry so several instances (one per test)
    can coexist in one process. The global ``metrics`` instance is the one
    the service and the /metrics endpoint share.
    """

    def __init__(self):
        self._registry = CollectorRegistry()

        self._errors_total = Counter(
            "phonos_errors_total",
            "Errors surfaced while rendering pronunciations",
            ["kind"],
            registry=self._registry,
        )
        self._requests_total = Counter(
            "phonos_requests_total",
            "Pronunciation requests by resulting audio state",
            ["state"],
            registry=self._registry,
        )
        self._jobs_total = Counter(
            "phonos_jobs_total",
            "Generation jobs by outcome",
            ["status"],
            registry=self._registry,
        )
        self._backend_seconds = Histogram(
            "phonos_backend_seconds",
            "Backend synthesis duration in seconds",
            ["backend"],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    def record_error(self, kind: str) -> None:
        """Increment the error counter for a message key (sanitized)."""
        self._errors_total.labels(kind=sanitize_kind(kind)).inc()

    def record_request(self, state: str) -> None:
        self._requests_total.labels(state=state).inc()

    def record_job(self, status: str) -> None:
        """Record a job outcome: ``success``, ``failed``, ``skipped`` or ``crashed``."""
        self._jobs_total.labels(status=status).inc()

    def observe_backend(self, backend: str, seconds: float) -> None:
        self._backend_seconds.labels(backend=backend).observe(seconds)

    def get_sample(self, name: str, labels: dict) -> float:
        """Current value of one sample, 0.0 if it was never recorded."""
        value = self._registry.get_sample_value(name, labels)
        return value if value is not None else 0.0

    def get_metrics_response(self) -> tuple[bytes, str]:
        """
        Get metrics in Prometheus format.

        Returns:
            Tuple of (content_bytes, content_type)
        """
        return generate_latest(self._registry), CONTENT_TYPE_LATEST


# Global metrics instance
metrics = PhonosMetrics()
