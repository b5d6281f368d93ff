"""Metrics collection for reconciliation activity."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Dict, Optional


@dataclass
class ReconciliationMetrics:
    """Aggregated reconciliation metrics."""
    operations: Dict[str, int] = field(default_factory=dict)
    persistence_calls: int = 0
    persistence_failures: Dict[str, int] = field(default_factory=dict)
    attachments_resolved: int = 0
    attachments_exhausted: int = 0
    resolution_attempts: int = 0
    overlay_discards: int = 0

    @property
    def total_operations(self) -> int:
        return sum(self.operations.values())

    @property
    def total_persistence_failures(self) -> int:
        return sum(self.persistence_failures.values())

    @property
    def persistence_failure_rate(self) -> float:
        """Share of persistence calls that failed."""
        if self.persistence_calls == 0:
            return 0.0
        return self.total_persistence_failures / self.persistence_calls

    @property
    def avg_resolution_attempts(self) -> float:
        """Average polling attempts per finished attachment resolution."""
        finished = self.attachments_resolved + self.attachments_exhausted
        if finished == 0:
            return 0.0
        return self.resolution_attempts / finished


class MetricsCollector:
    """
    Thread-safe metrics collector.

    Counts engine operations, persistence outcomes, attachment
    resolutions and overlay discards.
    """

    def __init__(self):
        self._lock = Lock()
        self._metrics = ReconciliationMetrics()
        self._started_at = datetime.now(timezone.utc)

    def record_operation(self, name: str) -> None:
        """Record an engine operation being invoked."""
        with self._lock:
            self._metrics.operations[name] = self._metrics.operations.get(name, 0) + 1

    def record_persistence_call(self, resource: str, operation: str, ok: bool) -> None:
        """Record a persistence call and whether it succeeded."""
        with self._lock:
            self._metrics.persistence_calls += 1
            if not ok:
                key = f"{resource}.{operation}"
                failures = self._metrics.persistence_failures
                failures[key] = failures.get(key, 0) + 1

    def record_resolution(self, attempts: int, resolved: bool) -> None:
        """Record a finished attachment resolution."""
        with self._lock:
            self._metrics.resolution_attempts += attempts
            if resolved:
                self._metrics.attachments_resolved += 1
            else:
                self._metrics.attachments_exhausted += 1

    def record_overlay_discard(self) -> None:
        with self._lock:
            self._metrics.overlay_discards += 1

    def get_metrics(self) -> ReconciliationMetrics:
        """Get current metrics snapshot."""
        with self._lock:
            return ReconciliationMetrics(
                operations=dict(self._metrics.operations),
                persistence_calls=self._metrics.persistence_calls,
                persistence_failures=dict(self._metrics.persistence_failures),
                attachments_resolved=self._metrics.attachments_resolved,
                attachments_exhausted=self._metrics.attachments_exhausted,
                resolution_attempts=self._metrics.resolution_attempts,
                overlay_discards=self._metrics.overlay_discards,
            )

    def uptime_seconds(self) -> float:
        """Get collector uptime in seconds."""
        return (datetime.now(timezone.utc) - self._started_at).total_seconds()

    def reset(self) -> None:
        """Reset all metrics (for testing)."""
        with self._lock:
            self._metrics = ReconciliationMetrics()
            self._started_at = datetime.now(timezone.utc)


# Global metrics collector instance
_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get the global metrics collector."""
    global _collector
    if _collector is None:
        _collector = MetricsCollector()
    return _collector


def reset_metrics_collector() -> None:
    """Reset the global metrics collector (for testing)."""
    global _collector
    _collector = None
