"""Outcome types returned by reconciliation operations."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from casebuilder.domain.models import Field

if TYPE_CHECKING:
    from casebuilder.domain.workspace import Workspace


class WarningCode(Enum):
    """Non-fatal problems reported alongside a successful operation."""
    VIEW_CREATE_FAILED = "VIEW_CREATE_FAILED"
    VIEW_READ_FAILED = "VIEW_READ_FAILED"
    VIEW_UPDATE_FAILED = "VIEW_UPDATE_FAILED"
    VIEW_DELETE_FAILED = "VIEW_DELETE_FAILED"
    VIEW_NOT_FOUND = "VIEW_NOT_FOUND"
    FIELD_CREATE_FAILED = "FIELD_CREATE_FAILED"
    FIELD_UPDATE_FAILED = "FIELD_UPDATE_FAILED"
    FIELD_DELETE_FAILED = "FIELD_DELETE_FAILED"
    CATALOG_REFRESH_FAILED = "CATALOG_REFRESH_FAILED"
    WORKFLOW_SAVE_FAILED = "WORKFLOW_SAVE_FAILED"
    ATTACHMENT_UNRESOLVED = "ATTACHMENT_UNRESOLVED"
    ATTACHED_TO_STEP_FALLBACK = "ATTACHED_TO_STEP_FALLBACK"
    OBJECT_ID_UNRESOLVED = "OBJECT_ID_UNRESOLVED"


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class ReconciliationWarning:
    """Something went wrong but the workspace is still well defined."""
    code: WarningCode
    message: str
    severity: Severity = Severity.WARNING

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "severity": self.severity.value,
        }


@dataclass(frozen=True)
class PersistenceEffect:
    """Record of one call made to a persistence collaborator."""
    resource: str
    operation: str
    target_id: Optional[Any] = None
    ok: bool = True
    detail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resource": self.resource,
            "operation": self.operation,
            "target_id": self.target_id,
            "ok": self.ok,
            "detail": self.detail,
        }


@dataclass
class ReconciliationResult:
    """Next workspace plus everything that happened on the way there."""
    workspace: "Workspace"
    effects: List[PersistenceEffect] = field(default_factory=list)
    warnings: List[ReconciliationWarning] = field(default_factory=list)
    created_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        """True when no warnings were raised."""
        return not self.warnings

    def has_warning(self, code: WarningCode) -> bool:
        return any(w.code == code for w in self.warnings)

    def effects_for(self, resource: str, operation: Optional[str] = None) -> List[PersistenceEffect]:
        return [
            e for e in self.effects
            if e.resource == resource and (operation is None or e.operation == operation)
        ]


@dataclass
class AttachmentResult(ReconciliationResult):
    """Result of attaching a newly created field."""
    field_name: Optional[str] = None
    field: Optional[Field] = None
    attached: bool = False
    attempts: int = 0

    @property
    def field_id(self) -> Optional[int]:
        return self.field.id if self.field else None
