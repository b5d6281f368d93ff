"""API v1 schemas."""

from casebuilder.api.v1.schemas.common import (
    ErrorResponse,
    HealthResponse,
    MetricsResponse,
)
from casebuilder.api.v1.schemas.editor import (
    AttachFieldsRequest,
    AttachNewFieldResponse,
    EffectSchema,
    FieldGroupSchema,
    FieldGroupsResponse,
    FieldRefSchema,
    NewFieldRequest,
    ReconciliationResponse,
    ReorderRequest,
    StepTypeChangeRequest,
    WarningSchema,
)

__all__ = [
    # Common
    "ErrorResponse",
    "HealthResponse",
    "MetricsResponse",
    # Editor
    "AttachFieldsRequest",
    "AttachNewFieldResponse",
    "EffectSchema",
    "FieldGroupSchema",
    "FieldGroupsResponse",
    "FieldRefSchema",
    "NewFieldRequest",
    "ReconciliationResponse",
    "ReorderRequest",
    "StepTypeChangeRequest",
    "WarningSchema",
]
