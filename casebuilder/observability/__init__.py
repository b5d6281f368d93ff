"""Observability module for the case builder."""

from casebuilder.observability.logging import (
    JSONFormatter,
    ContextLogger,
    configure_logging,
    get_logger,
)
from casebuilder.observability.metrics import (
    ReconciliationMetrics,
    MetricsCollector,
    get_metrics_collector,
    reset_metrics_collector,
)

__all__ = [
    # Logging
    "JSONFormatter",
    "ContextLogger",
    "configure_logging",
    "get_logger",
    # Metrics
    "ReconciliationMetrics",
    "MetricsCollector",
    "get_metrics_collector",
    "reset_metrics_collector",
]
