"""Request and response schemas for the workflow editor endpoints."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from casebuilder.domain.models import FieldDraft, FieldReference, FieldType, RefMultiplicity
from casebuilder.domain.results import ReconciliationResult


# =============================================================================
# Shared pieces
# =============================================================================

class FieldRefSchema(BaseModel):
    """Binding of a catalog field into a step or view."""

    field_id: int = Field(..., description="Catalog field id")
    required: bool = Field(False, description="Binding-local required flag")
    order: Optional[int] = Field(None, description="1-based display position")

    def to_domain(self) -> FieldReference:
        return FieldReference(self.field_id, self.required, self.order)

    @classmethod
    def from_domain(cls, ref: FieldReference) -> "FieldRefSchema":
        return cls(field_id=ref.field_id, required=ref.required, order=ref.order)


class WarningSchema(BaseModel):
    code: str
    message: str
    severity: str


class EffectSchema(BaseModel):
    resource: str
    operation: str
    target_id: Optional[Any] = None
    ok: bool = True
    detail: Optional[str] = None


# =============================================================================
# Requests
# =============================================================================

class StepTypeChangeRequest(BaseModel):
    """Commit of the step dialog: new type, optional name and field list."""

    to_type: str = Field(..., description="Target step type, e.g. 'Collect information'")
    name: Optional[str] = Field(None, description="New step name")
    field_refs: Optional[List[FieldRefSchema]] = Field(
        None, description="Field list to push to the step's view"
    )


class AttachFieldsRequest(BaseModel):
    """Append missing fields, or replace the order when a permutation is sent."""

    field_ids: List[int] = Field(..., description="Catalog field ids")


class NewFieldRequest(BaseModel):
    """A field to create in the catalog and attach to the target."""

    label: str = Field(..., description="Display label; the name is derived from it")
    type: str = Field(FieldType.TEXT.value, description="Field type")
    options: List[str] = Field(default_factory=list)
    primary: bool = False
    required: bool = False
    sample_value: Optional[str] = None
    ref_object_id: Optional[int] = None
    ref_multiplicity: Optional[RefMultiplicity] = None

    def to_draft(self) -> FieldDraft:
        return FieldDraft(
            label=self.label,
            type=FieldType.parse(self.type),
            options=list(self.options),
            primary=self.primary,
            required=self.required,
            sample_value=self.sample_value,
            ref_object_id=self.ref_object_id,
            ref_multiplicity=self.ref_multiplicity,
        )


class ReorderRequest(BaseModel):
    from_index: int = Field(..., description="Current position")
    to_index: int = Field(..., description="Destination position")


# =============================================================================
# Responses
# =============================================================================

class FieldGroupSchema(BaseModel):
    """One entry of the merged view/step grouping list."""

    key: str
    name: str
    stage_name: Optional[str] = None
    view_id: Optional[int] = None
    step_id: Optional[int] = None
    is_view: bool = False
    field_ids: List[int] = Field(default_factory=list, description="Display order incl. pending overlay")
    field_refs: List[FieldRefSchema] = Field(default_factory=list, description="Canonical bindings")
    pending: bool = Field(False, description="An optimistic order is still awaiting confirmation")


class FieldGroupsResponse(BaseModel):
    object_id: int
    version: int
    groups: List[FieldGroupSchema]


class ReconciliationResponse(BaseModel):
    """Outcome of an editor intent."""

    object_id: int
    version: int
    field_ids: Optional[List[int]] = Field(None, description="Resulting order of the edited target")
    step: Optional[Dict[str, Any]] = Field(None, description="Edited step in wire format")
    warnings: List[WarningSchema] = Field(default_factory=list)
    effects: List[EffectSchema] = Field(default_factory=list)

    @classmethod
    def build(
        cls,
        object_id: int,
        version: int,
        result: ReconciliationResult,
        field_ids: Optional[List[int]] = None,
        step: Optional[Dict[str, Any]] = None,
        **extra: Any,
    ) -> "ReconciliationResponse":
        return cls(
            object_id=object_id,
            version=version,
            field_ids=field_ids,
            step=step,
            warnings=[WarningSchema(**w.to_dict()) for w in result.warnings],
            effects=[EffectSchema(**e.to_dict()) for e in result.effects],
            **extra,
        )


class AttachNewFieldResponse(ReconciliationResponse):
    field_name: Optional[str] = None
    field_id: Optional[int] = None
    attached: bool = False
    attempts: int = 0
