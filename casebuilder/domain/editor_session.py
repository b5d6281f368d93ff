"""Scratch state for a step being edited in the step dialog."""

import logging
from typing import TYPE_CHECKING, Iterable, List, Optional, Union

from casebuilder.domain.errors import ErrorCode, SessionClosedError, ValidationError
from casebuilder.domain.models import FieldReference, StepType, dedupe_references, field_ids_of
from casebuilder.domain.results import ReconciliationResult
from casebuilder.domain.workspace import Workspace
from casebuilder.persistence.errors import PersistenceError

if TYPE_CHECKING:
    from casebuilder.domain.engine import ReconciliationEngine
    from casebuilder.persistence.repositories import ViewRepository

logger = logging.getLogger(__name__)


class EditorSession:
    """
    Private copy of one step's name, type and field list.

    Mutations only touch the copy. ``commit`` hands the result to the
    engine as a single type-change intent and closes the session.
    """

    def __init__(
        self,
        step_id: int,
        name: str,
        step_type: StepType,
        fields: Iterable[FieldReference] = (),
        view_id: Optional[int] = None,
    ):
        self.step_id = step_id
        self.view_id = view_id
        self._name = name
        self._type = step_type
        self._fields: List[FieldReference] = dedupe_references(fields)
        self._open = True

    @classmethod
    async def open(
        cls,
        workspace: Workspace,
        step_id: int,
        views: "ViewRepository",
    ) -> "EditorSession":
        """
        Seed a session from canonical state.

        A linked step is seeded from a fresh read of its view, whose
        field list is authoritative even when empty. Only a failed read
        falls back to the step's cached list.
        """
        step = workspace.workflow.get_step(step_id).step
        fields = step.fields
        if step.view_id is not None:
            try:
                view = await views.read(step.view_id)
            except PersistenceError as e:
                logger.warning(f"Could not read view {step.view_id} for step {step_id}; using step fields: {e}")
            else:
                fields = list(view.model.fields)
        return cls(step_id=step.id, name=step.name, step_type=step.type, fields=fields, view_id=step.view_id)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> StepType:
        return self._type

    @property
    def fields(self) -> List[FieldReference]:
        return list(self._fields)

    @property
    def field_ids(self) -> List[int]:
        return field_ids_of(self._fields)

    @property
    def is_open(self) -> bool:
        return self._open

    def _ensure_open(self) -> None:
        if not self._open:
            raise SessionClosedError(f"Editor session for step {self.step_id} is closed")

    def _set(self, refs: Iterable[FieldReference]) -> None:
        self._fields = dedupe_references(refs)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def rename(self, name: str) -> None:
        self._ensure_open()
        self._name = name

    def change_type(self, step_type: Union[StepType, str]) -> None:
        self._ensure_open()
        self._type = StepType.parse(step_type)

    def add_fields(self, field_ids: Iterable[int]) -> List[int]:
        """Append ids not already present. Returns the ids that were added."""
        self._ensure_open()
        present = set(self.field_ids)
        added = []
        for field_id in field_ids:
            if field_id not in present:
                present.add(field_id)
                added.append(field_id)
        if added:
            self._set(self._fields + [FieldReference(field_id) for field_id in added])
        return added

    def remove_field(self, field_id: int) -> None:
        self._ensure_open()
        if field_id not in self.field_ids:
            raise ValidationError(ErrorCode.FIELD_NOT_IN_TARGET, f"Field {field_id} is not in this step")
        self._set(ref for ref in self._fields if ref.field_id != field_id)

    def reorder(self, from_index: int, to_index: int) -> None:
        self._ensure_open()
        size = len(self._fields)
        if not (0 <= from_index < size and 0 <= to_index < size):
            raise ValidationError(
                ErrorCode.INDEX_OUT_OF_RANGE,
                f"Cannot move from {from_index} to {to_index} in a list of {size}",
            )
        refs = list(self._fields)
        refs.insert(to_index, refs.pop(from_index))
        self._set(refs)

    def set_required(self, field_id: int, required: bool) -> None:
        self._ensure_open()
        if field_id not in self.field_ids:
            raise ValidationError(ErrorCode.FIELD_NOT_IN_TARGET, f"Field {field_id} is not in this step")
        self._set(
            FieldReference(ref.field_id, required, ref.order) if ref.field_id == field_id else ref
            for ref in self._fields
        )

    def apply_resolved_field(self, field_id: int, required: bool = False) -> bool:
        """Add a field whose id just became known. Safe to call repeatedly."""
        self._ensure_open()
        if field_id in self.field_ids:
            return False
        self._set(self._fields + [FieldReference(field_id, required)])
        return True

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def commit(
        self,
        engine: "ReconciliationEngine",
        workspace: Workspace,
    ) -> ReconciliationResult:
        """Validate and push the session to the engine as one intent."""
        self._ensure_open()
        if not self._name or not self._name.strip():
            raise ValidationError(ErrorCode.EMPTY_NAME, "Step name must not be empty")

        result = await engine.on_step_type_change(
            workspace,
            self.step_id,
            self._type,
            provided_fields=self._fields if self._type.collects_fields else None,
            name=self._name,
        )
        self._open = False
        return result

    def discard(self) -> None:
        self._open = False
