"""Versioned editor workspace snapshots."""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional

from casebuilder.domain.catalog import FieldCatalog
from casebuilder.domain.models import WorkflowModel
from casebuilder.domain.views import ViewRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workspace:
    """
    Everything an operation needs, captured at one point in time.

    Operations never mutate a Workspace; they build the next one with
    ``evolve``. The workflow tree is a mutable object graph, so callers
    that change it must work on ``workflow.clone()``.
    """
    workflow: WorkflowModel = field(default_factory=WorkflowModel)
    views: ViewRegistry = field(default_factory=ViewRegistry)
    catalog: FieldCatalog = field(default_factory=FieldCatalog)
    object_id: Optional[int] = None
    route: Optional[str] = None
    version: int = 0

    def evolve(self, **changes) -> "Workspace":
        return replace(self, **changes)


WorkspaceListener = Callable[[Workspace], None]


class WorkspaceStore:
    """
    Owner of the current Workspace for one data object.

    Listeners (the optimistic overlay) are notified after each commit so
    they can compare themselves against fresh canonical data.
    """

    def __init__(self, workspace: Workspace):
        self._current = workspace
        self._listeners: List[WorkspaceListener] = []

    @property
    def current(self) -> Workspace:
        return self._current

    @property
    def version(self) -> int:
        return self._current.version

    def subscribe(self, listener: WorkspaceListener) -> None:
        self._listeners.append(listener)

    def commit(self, workspace: Workspace) -> Workspace:
        """Make ``workspace`` current. Last commit wins."""
        committed = workspace.evolve(version=self._current.version + 1)
        self._current = committed
        logger.debug(
            f"Committed workspace version {committed.version} for object {committed.object_id}"
        )
        for listener in self._listeners:
            listener(committed)
        return committed
