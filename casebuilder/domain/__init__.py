"""Domain layer: workflow model, views, catalog and reconciliation."""

from casebuilder.domain.errors import (
    CaseBuilderError,
    ContainerNotFoundError,
    ErrorCode,
    InferenceError,
    SessionClosedError,
    StepNotFoundError,
    TargetNotFoundError,
    ValidationError,
)
from casebuilder.domain.models import (
    Field,
    FieldDraft,
    FieldReference,
    FieldType,
    LinkedView,
    Process,
    RefMultiplicity,
    Stage,
    Step,
    StepBinding,
    StepType,
    UnlinkedFields,
    View,
    ViewModel,
    WorkflowModel,
)
from casebuilder.domain.catalog import FieldCatalog
from casebuilder.domain.views import ViewRegistry
from casebuilder.domain.targets import FieldTarget, OverlayKey, TargetKind
from casebuilder.domain.workspace import Workspace, WorkspaceStore
from casebuilder.domain.results import (
    AttachmentResult,
    PersistenceEffect,
    ReconciliationResult,
    ReconciliationWarning,
    Severity,
    WarningCode,
)
from casebuilder.domain.overlay import OptimisticOverlay, canonical_order
from casebuilder.domain.resolution import (
    FieldGroup,
    build_field_groups,
    check_link_invariants,
    infer_object_id,
)
from casebuilder.domain.attachment import AttachmentResolver, Resolution
from casebuilder.domain.engine import ReconciliationEngine
from casebuilder.domain.editor_session import EditorSession

__all__ = [
    # Errors
    "CaseBuilderError",
    "ContainerNotFoundError",
    "ErrorCode",
    "InferenceError",
    "SessionClosedError",
    "StepNotFoundError",
    "TargetNotFoundError",
    "ValidationError",
    # Models
    "Field",
    "FieldDraft",
    "FieldReference",
    "FieldType",
    "LinkedView",
    "Process",
    "RefMultiplicity",
    "Stage",
    "Step",
    "StepBinding",
    "StepType",
    "UnlinkedFields",
    "View",
    "ViewModel",
    "WorkflowModel",
    # Snapshots
    "FieldCatalog",
    "ViewRegistry",
    "Workspace",
    "WorkspaceStore",
    # Targets
    "FieldTarget",
    "OverlayKey",
    "TargetKind",
    # Results
    "AttachmentResult",
    "PersistenceEffect",
    "ReconciliationResult",
    "ReconciliationWarning",
    "Severity",
    "WarningCode",
    # Reconciliation
    "AttachmentResolver",
    "EditorSession",
    "FieldGroup",
    "OptimisticOverlay",
    "ReconciliationEngine",
    "Resolution",
    "build_field_groups",
    "canonical_order",
    "check_link_invariants",
    "infer_object_id",
]
