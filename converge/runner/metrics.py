"""Prometheus metrics for the integration runner."""

from typing import Optional

from prometheus_client import CollectorRegistry, Gauge, start_http_server


class RunnerMetrics:
    """Last-run gauges for one integration.

    Each runner owns its registry so several runners (or tests) in one
    process never collide on metric names.
    """

    def __init__(self, integration: str, registry: Optional[CollectorRegistry] = None):
        self.integration = integration
        self.registry = registry if registry is not None else CollectorRegistry()

        self.last_run_status = Gauge(
            "qontract_reconcile_last_run_status",
            "Last run status of the integration: 0 success, 1 failure.",
            labelnames=("integration",),
            registry=self.registry,
        ).labels(integration=integration)

        self.last_run_seconds = Gauge(
            "qontract_reconcile_last_run_seconds",
            "Duration of the last integration run in seconds.",
            labelnames=("integration",),
            registry=self.registry,
        ).labels(integration=integration)

    def record_run(self, status: int, duration_seconds: float) -> None:
        """Record the outcome of one cycle."""
        self.last_run_status.set(status)
        self.last_run_seconds.set(duration_seconds)

    def value(self, name: str) -> Optional[float]:
        return self.registry.get_sample_value(name, {"integration": self.integration})


def start_metrics_server(port: int, registry: CollectorRegistry) -> None:
    """Start a background HTTP server exposing the registry's metrics."""

    start_http_server(port, registry=registry)


__all__ = ["RunnerMetrics", "start_metrics_server"]
