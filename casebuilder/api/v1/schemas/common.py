"""Common schema types for API responses."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")

    model_config = {"json_schema_extra": {
        "example": {
            "error_code": "EMPTY_LABEL",
            "message": "Field label must not be empty",
            "details": None,
        }
    }}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    version: str = Field(..., description="API version")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MetricsResponse(BaseModel):
    """Reconciliation counters since start (or last reset)."""

    uptime_seconds: float
    operations: Dict[str, int] = Field(default_factory=dict)
    total_operations: int = 0
    persistence_calls: int = 0
    persistence_failures: Dict[str, int] = Field(default_factory=dict)
    persistence_failure_rate: float = 0.0
    attachments_resolved: int = 0
    attachments_exhausted: int = 0
    avg_resolution_attempts: float = 0.0
    overlay_discards: int = 0
