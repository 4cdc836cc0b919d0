"""
Shared metrics configuration for the Stock Opname sync layer.
"""

from typing import Dict, Any, Optional

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # Each collector owns a registry so several service instances can coexist in one process.
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        # Envelope actions
        self._metrics["actions_total"] = Counter(
            "actions_total",
            "Total dispatched envelope actions",
            ["action", "success"],
            registry=self.registry
        )

        self._setup_sync_metrics()

    def _setup_sync_metrics(self):
        """Set up cache and mutation metrics."""
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Total read cache hits",
            ["operation"],
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Total read cache misses",
            ["operation"],
            registry=self.registry
        )

        self._metrics["lock_timeouts_total"] = Counter(
            "lock_timeouts_total",
            "Mutations rejected because the store lock was busy",
            ["operation"],
            registry=self.registry
        )

        self._metrics["mutations_committed_total"] = Counter(
            "mutations_committed_total",
            "Committed store mutations",
            ["operation"],
            registry=self.registry
        )

        self._metrics["store_version"] = Gauge(
            "store_version",
            "Current store version token",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_action(self, action: str, success: bool):
        """Record one dispatched envelope action."""
        self._metrics["actions_total"].labels(action=action, success=str(success).lower()).inc()

    def record_version(self, version: int):
        """Publish the current version token."""
        self._metrics["store_version"].set(version)

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).inc()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
