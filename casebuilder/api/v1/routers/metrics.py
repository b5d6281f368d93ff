"""Reconciliation metrics endpoint."""

from fastapi import APIRouter, Depends

from casebuilder.api.v1.dependencies import get_metrics
from casebuilder.api.v1.schemas import MetricsResponse
from casebuilder.observability.metrics import MetricsCollector


router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", response_model=MetricsResponse, summary="Reconciliation counters")
async def get_reconciliation_metrics(
    collector: MetricsCollector = Depends(get_metrics),
) -> MetricsResponse:
    metrics = collector.get_metrics()
    return MetricsResponse(
        uptime_seconds=collector.uptime_seconds(),
        operations=metrics.operations,
        total_operations=metrics.total_operations,
        persistence_calls=metrics.persistence_calls,
        persistence_failures=metrics.persistence_failures,
        persistence_failure_rate=metrics.persistence_failure_rate,
        attachments_resolved=metrics.attachments_resolved,
        attachments_exhausted=metrics.attachments_exhausted,
        avg_resolution_attempts=metrics.avg_resolution_attempts,
        overlay_discards=metrics.overlay_discards,
    )
