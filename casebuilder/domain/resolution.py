"""Merging views and collecting steps into one list of field groups."""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from casebuilder.domain.errors import InferenceError
from casebuilder.domain.models import FieldReference
from casebuilder.domain.workspace import Workspace


_ROUTE_OBJECT_ID = re.compile(r"/application/(\d+)")


@dataclass
class FieldGroup:
    """One entry in the editor's list of field groupings."""
    key: str
    name: str
    field_refs: List[FieldReference] = field(default_factory=list)
    stage_name: Optional[str] = None
    view_id: Optional[int] = None
    step_id: Optional[int] = None
    is_view: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "name": self.name,
            "stage_name": self.stage_name,
            "view_id": self.view_id,
            "step_id": self.step_id,
            "is_view": self.is_view,
            "fields": [ref.to_dict() for ref in self.field_refs],
        }


def build_field_groups(workspace: Workspace) -> List[FieldGroup]:
    """
    Stored views sorted by name, then linked collecting steps whose view
    is not among them.

    A step whose ``view_id`` names a stored view is represented by that
    view only; a step with no ``view_id`` is not a grouping at all. Step
    entries keep workflow order.
    """
    groups = [
        FieldGroup(
            key=f"view:{view.id}",
            name=view.name,
            field_refs=list(view.model.fields),
            view_id=view.id,
            is_view=True,
        )
        for view in workspace.views.sorted_by_name()
    ]

    for location in workspace.workflow.iter_steps():
        step = location.step
        if not step.collects_fields:
            continue
        if step.view_id is None or step.view_id in workspace.views:
            continue
        groups.append(FieldGroup(
            key=f"step:{step.id}",
            name=step.name,
            field_refs=step.fields,
            stage_name=location.stage.name,
            view_id=step.view_id,
            step_id=step.id,
        ))
    return groups


def check_link_invariants(workspace: Workspace) -> List[str]:
    """Human-readable descriptions of every broken step/view link."""
    problems = []
    view_counts = Counter(
        loc.step.view_id for loc in workspace.workflow.iter_steps()
        if loc.step.view_id is not None
    )

    for location in workspace.workflow.iter_steps():
        step = location.step
        if not step.collects_fields:
            if step.is_linked:
                problems.append(f"Step {step.id} is not collecting but links view {step.view_id}")
            if step.fields:
                problems.append(f"Step {step.id} is not collecting but carries fields")
            continue
        if step.view_id is None:
            continue
        if step.view_id not in workspace.views:
            problems.append(f"Step {step.id} links unknown view {step.view_id}")
        if view_counts[step.view_id] > 1:
            problems.append(f"Step {step.id} shares view {step.view_id} with another step")
    return problems


def infer_object_id(workspace: Workspace) -> int:
    """
    Data object that should own a new view.

    Prefers the first known view, then the editor route, then the
    workspace's own object id.
    """
    first = workspace.views.first()
    if first is not None:
        return first.object_id
    if workspace.route:
        match = _ROUTE_OBJECT_ID.search(workspace.route)
        if match:
            return int(match.group(1))
    if workspace.object_id is not None:
        return workspace.object_id
    raise InferenceError("Cannot determine the data object that owns the new view")
