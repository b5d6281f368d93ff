"""Case workflow domain models.

A case workflow is an ordered tree of Stages -> Processes -> Steps.
Steps of type "Collect information" gather data through Fields, either
through a locally held list of field references or through a linked
View whose field layout is persisted independently.
"""

import copy
import json
from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from casebuilder.domain.errors import ErrorCode, StepNotFoundError, ValidationError


class StepType(str, Enum):
    """Kinds of work a step can represent."""
    COLLECT_INFORMATION = "Collect information"
    APPROVE_REJECT = "Approve/Reject"
    AUTOMATION = "Automation"
    CREATE_CASE = "Create Case"
    DECISION = "Decision"
    GENERATE_DOCUMENT = "Generate Document"
    GENERATIVE_AI = "Generative AI"
    ROBOTIC_AUTOMATION = "Robotic Automation"
    SEND_NOTIFICATION = "Send Notification"

    @property
    def collects_fields(self) -> bool:
        return self is StepType.COLLECT_INFORMATION

    @classmethod
    def parse(cls, value: Union[str, "StepType"]) -> "StepType":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(ErrorCode.UNKNOWN_STEP_TYPE, f"Unknown step type: {value!r}")


class FieldType(str, Enum):
    """Data types a catalog field can hold."""
    ADDRESS = "Address"
    AUTO_COMPLETE = "AutoComplete"
    CHECKBOX = "Checkbox"
    CURRENCY = "Currency"
    DATE = "Date"
    DATE_TIME = "DateTime"
    DECIMAL = "Decimal"
    DROPDOWN = "Dropdown"
    EMAIL = "Email"
    INTEGER = "Integer"
    LOCATION = "Location"
    REFERENCE_VALUES = "ReferenceValues"
    DATA_REFERENCE_SINGLE = "DataReferenceSingle"
    DATA_REFERENCE_MULTI = "DataReferenceMulti"
    CASE_REFERENCE_SINGLE = "CaseReferenceSingle"
    CASE_REFERENCE_MULTI = "CaseReferenceMulti"
    PERCENTAGE = "Percentage"
    PHONE = "Phone"
    RADIO_BUTTONS = "RadioButtons"
    RICH_TEXT = "RichText"
    STATUS = "Status"
    TEXT = "Text"
    TEXT_AREA = "TextArea"
    TIME = "Time"
    URL = "URL"
    USER_REFERENCE = "UserReference"

    @classmethod
    def parse(cls, value: Union[str, "FieldType"]) -> "FieldType":
        try:
            return cls(value)
        except ValueError:
            raise ValidationError(ErrorCode.UNKNOWN_FIELD_TYPE, f"Unknown field type: {value!r}")


class RefMultiplicity(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


def default_layout() -> Dict[str, Any]:
    return {"type": "form", "columns": 1}


def _load_json(raw: Any, default: Any) -> Any:
    """Storage may hand back JSON columns as strings."""
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return default
    return default if raw is None else raw


# =============================================================================
# FIELDS
# =============================================================================

@dataclass
class Field:
    """A catalog field definition. Owned by the catalog, referenced by steps/views."""
    name: str
    label: str
    type: FieldType
    id: Optional[int] = None
    options: List[str] = dataclass_field(default_factory=list)
    primary: bool = False
    sample_value: Optional[str] = None
    ref_object_id: Optional[int] = None
    ref_multiplicity: Optional[RefMultiplicity] = None
    object_id: Optional[int] = None
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "label": self.label,
            "type": self.type.value,
            "options": list(self.options),
            "primary": self.primary,
            "sampleValue": self.sample_value,
            "refObjectId": self.ref_object_id,
            "refMultiplicity": self.ref_multiplicity.value if self.ref_multiplicity else None,
            "objectid": self.object_id,
            "description": self.description,
        }
        if self.id is not None:
            data["id"] = self.id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Field":
        multiplicity = data.get("refMultiplicity")
        options = _load_json(data.get("options"), [])
        return cls(
            id=data.get("id"),
            name=data["name"],
            label=data.get("label") or data["name"],
            type=FieldType.parse(data["type"]),
            options=list(options) if isinstance(options, list) else [],
            primary=bool(data.get("primary", False)),
            sample_value=data.get("sampleValue"),
            ref_object_id=data.get("refObjectId"),
            ref_multiplicity=RefMultiplicity(multiplicity) if multiplicity else None,
            object_id=data.get("objectid"),
            description=data.get("description"),
        )


@dataclass
class FieldDraft:
    """User input for a field that does not exist in the catalog yet."""
    label: str
    type: FieldType = FieldType.TEXT
    options: List[str] = dataclass_field(default_factory=list)
    primary: bool = False
    required: bool = False
    sample_value: Optional[str] = None
    ref_object_id: Optional[int] = None
    ref_multiplicity: Optional[RefMultiplicity] = None

    @property
    def proposed_name(self) -> str:
        """Name requested from the catalog; the catalog may assign another."""
        return "_".join(self.label.strip().lower().split())

    def validate(self) -> None:
        if not self.label or not self.label.strip():
            raise ValidationError(ErrorCode.EMPTY_LABEL, "Field label must not be empty")

    def to_record(self, object_id: Optional[int]) -> Dict[str, Any]:
        """Creation payload in the storage wire format."""
        return {
            "name": self.proposed_name,
            "type": self.type.value,
            "label": self.label.strip(),
            "required": self.required,
            "primary": self.primary,
            "objectid": object_id,
            "description": self.label.strip(),
            "order": 0,
            "options": list(self.options),
            "sampleValue": self.sample_value,
            "refObjectId": self.ref_object_id,
            "refMultiplicity": self.ref_multiplicity.value if self.ref_multiplicity else None,
        }


@dataclass(frozen=True)
class FieldReference:
    """Binding of a catalog field into a step or view.

    ``required`` belongs to the binding, not the field: the same field
    can be required in one view and optional in another.
    """
    field_id: int
    required: bool = False
    order: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"fieldId": self.field_id, "required": self.required}
        if self.order is not None:
            data["order"] = self.order
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldReference":
        order = data.get("order")
        return cls(
            field_id=int(data["fieldId"]),
            required=bool(data.get("required", False)),
            order=int(order) if order is not None else None,
        )


def dedupe_references(refs: Iterable[FieldReference]) -> List[FieldReference]:
    """Drop repeated field ids (first wins) and renumber display order."""
    seen = set()
    result = []
    for ref in refs:
        if ref.field_id in seen:
            continue
        seen.add(ref.field_id)
        result.append(FieldReference(ref.field_id, ref.required, len(result) + 1))
    return result


def field_ids_of(refs: Iterable[FieldReference]) -> List[int]:
    return [ref.field_id for ref in refs]


# =============================================================================
# VIEWS
# =============================================================================

@dataclass(frozen=True)
class ViewModel:
    """Ordered field layout of a view. Its order is authoritative."""
    fields: Tuple[FieldReference, ...] = ()
    layout: Dict[str, Any] = dataclass_field(default_factory=default_layout)

    @property
    def field_ids(self) -> List[int]:
        return field_ids_of(self.fields)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fields": [ref.to_dict() for ref in self.fields],
            "layout": dict(self.layout),
        }

    @classmethod
    def from_dict(cls, raw: Any) -> "ViewModel":
        data = _load_json(raw, {})
        if not isinstance(data, dict):
            data = {}
        raw_fields = data.get("fields")
        refs = []
        if isinstance(raw_fields, list):
            for item in raw_fields:
                try:
                    refs.append(FieldReference.from_dict(item))
                except (KeyError, TypeError, ValueError):
                    continue
        layout = data.get("layout") if isinstance(data.get("layout"), dict) else default_layout()
        return cls(fields=tuple(refs), layout=layout)


@dataclass(frozen=True)
class View:
    """Independently persisted field layout bound to a data object."""
    id: int
    name: str
    object_id: int
    model: ViewModel = dataclass_field(default_factory=ViewModel)

    @property
    def field_ids(self) -> List[int]:
        return self.model.field_ids

    def with_fields(self, refs: Iterable[FieldReference]) -> "View":
        return View(
            id=self.id,
            name=self.name,
            object_id=self.object_id,
            model=ViewModel(fields=tuple(dedupe_references(refs)), layout=dict(self.model.layout)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "objectid": self.object_id,
            "model": self.model.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "View":
        return cls(
            id=int(data["id"]),
            name=data.get("name", ""),
            object_id=int(data["objectid"]),
            model=ViewModel.from_dict(data.get("model")),
        )


# =============================================================================
# STEP FIELD BINDING
# =============================================================================

@dataclass(frozen=True)
class UnlinkedFields:
    """Step owns its field list directly."""
    fields: Tuple[FieldReference, ...] = ()


@dataclass(frozen=True)
class LinkedView:
    """Step is linked to a view; ``fields`` is a cache of the view's list."""
    view_id: int
    fields: Tuple[FieldReference, ...] = ()


StepBinding = Union[UnlinkedFields, LinkedView]


# =============================================================================
# WORKFLOW TREE
# =============================================================================

@dataclass
class Step:
    """A unit of work within a process."""
    id: int
    name: str
    type: StepType
    binding: StepBinding = dataclass_field(default_factory=UnlinkedFields)

    @property
    def collects_fields(self) -> bool:
        return self.type.collects_fields

    @property
    def view_id(self) -> Optional[int]:
        if isinstance(self.binding, LinkedView):
            return self.binding.view_id
        return None

    @property
    def is_linked(self) -> bool:
        return isinstance(self.binding, LinkedView)

    @property
    def fields(self) -> List[FieldReference]:
        return list(self.binding.fields)

    @property
    def field_ids(self) -> List[int]:
        return field_ids_of(self.binding.fields)

    def link(self, view_id: int, fields: Iterable[FieldReference] = ()) -> None:
        self.binding = LinkedView(view_id=view_id, fields=tuple(dedupe_references(fields)))

    def unlink(self, fields: Iterable[FieldReference] = ()) -> None:
        self.binding = UnlinkedFields(fields=tuple(dedupe_references(fields)))

    def set_fields(self, fields: Iterable[FieldReference]) -> None:
        """Replace the field list, keeping the binding kind."""
        if isinstance(self.binding, LinkedView):
            self.link(self.binding.view_id, fields)
        else:
            self.unlink(fields)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "fields": [ref.to_dict() for ref in self.binding.fields],
        }
        if isinstance(self.binding, LinkedView):
            data["viewId"] = self.binding.view_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Step":
        refs = tuple(
            FieldReference.from_dict(item) for item in data.get("fields") or []
        )
        view_id = data.get("viewId")
        if isinstance(view_id, int) and not isinstance(view_id, bool):
            binding: StepBinding = LinkedView(view_id=view_id, fields=refs)
        else:
            binding = UnlinkedFields(fields=refs)
        return cls(
            id=int(data["id"]),
            name=data["name"],
            type=StepType.parse(data["type"]),
            binding=binding,
        )


@dataclass
class Process:
    id: int
    name: str
    steps: List[Step] = dataclass_field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "steps": [s.to_dict() for s in self.steps]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Process":
        return cls(
            id=int(data["id"]),
            name=data["name"],
            steps=[Step.from_dict(s) for s in data.get("steps") or []],
        )


@dataclass
class Stage:
    id: int
    name: str
    processes: List[Process] = dataclass_field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "processes": [p.to_dict() for p in self.processes]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Stage":
        return cls(
            id=int(data["id"]),
            name=data["name"],
            processes=[Process.from_dict(p) for p in data.get("processes") or []],
        )


@dataclass
class StepLocation:
    """A step together with its ancestry."""
    stage: Stage
    process: Process
    step: Step
    index: int


@dataclass
class WorkflowModel:
    """The Stage/Process/Step tree of a case type."""
    name: str = ""
    description: str = ""
    stages: List[Stage] = dataclass_field(default_factory=list)

    def clone(self) -> "WorkflowModel":
        return copy.deepcopy(self)

    def iter_steps(self) -> Iterator[StepLocation]:
        """Walk steps in workflow order."""
        for stage in self.stages:
            for process in stage.processes:
                for index, step in enumerate(process.steps):
                    yield StepLocation(stage, process, step, index)

    def find_step(self, step_id: int) -> Optional[StepLocation]:
        for location in self.iter_steps():
            if location.step.id == step_id:
                return location
        return None

    def get_step(self, step_id: int) -> StepLocation:
        location = self.find_step(step_id)
        if location is None:
            raise StepNotFoundError(step_id)
        return location

    def find_stage(self, stage_id: int) -> Optional[Stage]:
        return next((s for s in self.stages if s.id == stage_id), None)

    def find_process(self, stage_id: int, process_id: int) -> Optional[Process]:
        stage = self.find_stage(stage_id)
        if stage is None:
            return None
        return next((p for p in stage.processes if p.id == process_id), None)

    def steps_linked_to(self, view_id: int) -> List[Step]:
        return [loc.step for loc in self.iter_steps() if loc.step.view_id == view_id]

    def next_step_id(self) -> int:
        return max((loc.step.id for loc in self.iter_steps()), default=0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "stages": [s.to_dict() for s in self.stages],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowModel":
        data = _load_json(data, {})
        return cls(
            name=data.get("name", ""),
            description=data.get("description") or "",
            stages=[Stage.from_dict(s) for s in data.get("stages") or []],
        )
