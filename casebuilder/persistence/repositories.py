"""Repository protocols and in-memory implementations."""

import copy
import itertools
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple, runtime_checkable

from casebuilder.domain.models import Field, FieldDraft, View, ViewModel, WorkflowModel
from casebuilder.persistence.errors import NotFoundError, PersistenceError


@dataclass(frozen=True)
class CreatedField:
    """Acknowledgement of a field creation.

    Storage always reports the assigned name; the id is usually withheld
    until the catalog is listed again.
    """
    name: str
    id: Optional[int] = None


@runtime_checkable
class ViewRepository(Protocol):
    """Protocol for view storage."""

    async def create(self, name: str, object_id: int, model: ViewModel) -> int:
        """Create a view. Returns the new view id."""
        ...

    async def read(self, view_id: int) -> View:
        """Get view by id. Raises NotFoundError."""
        ...

    async def update(self, view: View) -> None:
        """Replace name and model of an existing view."""
        ...

    async def delete(self, view_id: int) -> None:
        """Delete a view."""
        ...

    async def list(self, object_id: int) -> List[View]:
        """List views owned by a data object."""
        ...


@runtime_checkable
class FieldRepository(Protocol):
    """Protocol for the field catalog."""

    async def create(self, draft: FieldDraft, object_id: Optional[int]) -> CreatedField:
        """Create a field. The id may be absent from the acknowledgement."""
        ...

    async def list(self, object_id: Optional[int] = None) -> List[Field]:
        """Current catalog snapshot."""
        ...

    async def update(self, field_id: int, changes: Dict[str, Any]) -> None:
        """Apply a partial update (wire-format keys)."""
        ...

    async def delete(self, field_id: int) -> None:
        """Delete a field."""
        ...


@runtime_checkable
class WorkflowRepository(Protocol):
    """Protocol for the stage tree of a data object."""

    async def read(self, object_id: int) -> WorkflowModel:
        ...

    async def save(self, object_id: int, workflow: WorkflowModel) -> None:
        ...


class _FailureInjection:
    """Shared call log and failure switch for in-memory repositories."""

    resource = "resource"

    def __init__(self):
        self.failing: Set[str] = set()
        self.calls: List[Tuple[str, Any]] = []

    def fail(self, *operations: str) -> None:
        """Make the named operations raise PersistenceError until healed."""
        self.failing.update(operations)

    def heal(self) -> None:
        self.failing.clear()

    def _call(self, operation: str, argument: Any = None) -> None:
        self.calls.append((operation, argument))
        if operation in self.failing:
            raise PersistenceError(
                f"Injected {self.resource} {operation} failure",
                resource=self.resource,
                operation=operation,
            )

    def calls_to(self, operation: str) -> List[Any]:
        return [arg for op, arg in self.calls if op == operation]


class InMemoryViewRepository(_FailureInjection):
    """In-memory view repository for testing."""

    resource = "view"

    def __init__(self, views: Optional[List[View]] = None, first_id: int = 1):
        super().__init__()
        self._views: Dict[int, View] = {}
        self._ids = itertools.count(first_id)
        for view in views or []:
            self._views[view.id] = view
        if self._views:
            self._ids = itertools.count(max(self._views) + 1)

    async def create(self, name: str, object_id: int, model: ViewModel) -> int:
        self._call("create", name)
        view_id = next(self._ids)
        self._views[view_id] = View(id=view_id, name=name, object_id=object_id, model=model)
        return view_id

    async def read(self, view_id: int) -> View:
        self._call("read", view_id)
        if view_id not in self._views:
            raise NotFoundError(f"View {view_id} not found", resource=self.resource, operation="read")
        return self._views[view_id]

    async def update(self, view: View) -> None:
        self._call("update", view.id)
        if view.id not in self._views:
            raise NotFoundError(f"View {view.id} not found", resource=self.resource, operation="update")
        self._views[view.id] = view

    async def delete(self, view_id: int) -> None:
        self._call("delete", view_id)
        if view_id not in self._views:
            raise NotFoundError(f"View {view_id} not found", resource=self.resource, operation="delete")
        del self._views[view_id]

    async def list(self, object_id: int) -> List[View]:
        self._call("list", object_id)
        return [v for v in self._views.values() if v.object_id == object_id]

    def get(self, view_id: int) -> Optional[View]:
        """Synchronous peek for assertions."""
        return self._views.get(view_id)

    def clear(self) -> None:
        """Clear all data (for testing)."""
        self._views.clear()
        self.calls.clear()
        self.failing.clear()


class InMemoryFieldRepository(_FailureInjection):
    """
    In-memory field catalog for testing.

    ``visibility_delay`` is the number of ``list()`` calls that will not
    yet see a newly created field, which mimics a catalog refreshed out
    of band. ``return_ids`` makes ``create`` report the new id.
    """

    resource = "field"

    def __init__(
        self,
        fields: Optional[List[Field]] = None,
        visibility_delay: int = 0,
        return_ids: bool = False,
    ):
        super().__init__()
        self.visibility_delay = visibility_delay
        self.return_ids = return_ids
        self._fields: Dict[int, Field] = {}
        self._hidden: Dict[int, int] = {}  # field id -> remaining list() calls
        for f in fields or []:
            self._fields[f.id] = f
        self._ids = itertools.count(max(self._fields, default=0) + 1)

    def _unique_name(self, proposed: str) -> str:
        taken = {f.name for f in self._fields.values()}
        if proposed not in taken:
            return proposed
        for suffix in itertools.count(2):
            candidate = f"{proposed}_{suffix}"
            if candidate not in taken:
                return candidate

    async def create(self, draft: FieldDraft, object_id: Optional[int]) -> CreatedField:
        self._call("create", draft.label)
        field_id = next(self._ids)
        name = self._unique_name(draft.proposed_name)
        self._fields[field_id] = Field(
            id=field_id,
            name=name,
            label=draft.label.strip(),
            type=draft.type,
            options=list(draft.options),
            primary=draft.primary,
            sample_value=draft.sample_value,
            ref_object_id=draft.ref_object_id,
            ref_multiplicity=draft.ref_multiplicity,
            object_id=object_id,
            description=draft.label.strip(),
        )
        if self.visibility_delay > 0:
            self._hidden[field_id] = self.visibility_delay
        return CreatedField(name=name, id=field_id if self.return_ids else None)

    async def list(self, object_id: Optional[int] = None) -> List[Field]:
        self._call("list", object_id)
        visible = []
        for field_id, f in self._fields.items():
            remaining = self._hidden.get(field_id, 0)
            if remaining > 0:
                self._hidden[field_id] = remaining - 1
                continue
            if object_id is not None and f.object_id is not None and f.object_id != object_id:
                continue
            visible.append(copy.copy(f))
        return visible

    async def update(self, field_id: int, changes: Dict[str, Any]) -> None:
        self._call("update", field_id)
        if field_id not in self._fields:
            raise NotFoundError(f"Field {field_id} not found", resource=self.resource, operation="update")
        merged = {**self._fields[field_id].to_dict(), **changes, "id": field_id}
        self._fields[field_id] = Field.from_dict(merged)

    async def delete(self, field_id: int) -> None:
        self._call("delete", field_id)
        if field_id not in self._fields:
            raise NotFoundError(f"Field {field_id} not found", resource=self.resource, operation="delete")
        del self._fields[field_id]
        self._hidden.pop(field_id, None)

    def get(self, field_id: int) -> Optional[Field]:
        return self._fields.get(field_id)

    def by_name(self, name: str) -> Optional[Field]:
        return next((f for f in self._fields.values() if f.name == name), None)

    def clear(self) -> None:
        """Clear all data (for testing)."""
        self._fields.clear()
        self._hidden.clear()
        self.calls.clear()
        self.failing.clear()


class InMemoryWorkflowRepository(_FailureInjection):
    """In-memory workflow repository for testing."""

    resource = "workflow"

    def __init__(self, workflows: Optional[Dict[int, WorkflowModel]] = None):
        super().__init__()
        self._workflows: Dict[int, WorkflowModel] = dict(workflows or {})

    async def read(self, object_id: int) -> WorkflowModel:
        self._call("read", object_id)
        if object_id not in self._workflows:
            raise NotFoundError(f"Object {object_id} not found", resource=self.resource, operation="read")
        return self._workflows[object_id].clone()

    async def save(self, object_id: int, workflow: WorkflowModel) -> None:
        self._call("save", object_id)
        self._workflows[object_id] = workflow.clone()

    def get(self, object_id: int) -> Optional[WorkflowModel]:
        return self._workflows.get(object_id)

    def clear(self) -> None:
        """Clear all data (for testing)."""
        self._workflows.clear()
        self.calls.clear()
        self.failing.clear()
