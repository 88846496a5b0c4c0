"""Scheduling loops for integrations and validations."""

from converge.runner.integration import IntegrationRunner, feature_enabled
from converge.runner.metrics import RunnerMetrics, start_metrics_server
from converge.runner.validation import ValidationRunner

__all__ = [
    "IntegrationRunner",
    "ValidationRunner",
    "RunnerMetrics",
    "feature_enabled",
    "start_metrics_server",
]
