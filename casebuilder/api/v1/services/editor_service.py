"""Editor service: per-object workspaces, overlays and engine calls."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from casebuilder.api.v1.exceptions import NotFoundError, ServiceUnavailableError
from casebuilder.domain.catalog import FieldCatalog
from casebuilder.domain.errors import CaseBuilderError
from casebuilder.domain.engine import ReconciliationEngine
from casebuilder.domain.models import FieldDraft, FieldReference, StepType
from casebuilder.domain.overlay import OptimisticOverlay, canonical_order
from casebuilder.domain.resolution import FieldGroup, build_field_groups
from casebuilder.domain.results import AttachmentResult, ReconciliationResult
from casebuilder.domain.targets import FieldTarget, OverlayKey, TargetKind
from casebuilder.domain.views import ViewRegistry
from casebuilder.domain.workspace import Workspace, WorkspaceStore
from casebuilder.observability.metrics import MetricsCollector, get_metrics_collector
from casebuilder.persistence.errors import NotFoundError as StorageNotFoundError
from casebuilder.persistence.errors import PersistenceError
from casebuilder.persistence.repositories import (
    FieldRepository,
    ViewRepository,
    WorkflowRepository,
)
from casebuilder.settings import Settings


logger = logging.getLogger(__name__)


@dataclass
class DisplayedGroup:
    """A field group with the order the editor should currently show."""
    group: FieldGroup
    field_ids: List[int]
    pending: bool


def _attach_order(current: Optional[List[int]], field_ids: Sequence[int]) -> Optional[List[int]]:
    """
    Order an attach is expected to produce, or None when nothing changes.

    A permutation of the current ids replaces the order; anything else
    appends the ids not yet present.
    """
    if current is None or not field_ids:
        return None
    requested = list(dict.fromkeys(field_ids))
    if len(requested) == len(current) and set(requested) == set(current):
        expected = requested
    else:
        expected = current + [field_id for field_id in requested if field_id not in current]
    return expected if expected != current else None


class EditorService:
    """
    Front door for the HTTP layer.

    Keeps one WorkspaceStore and one OptimisticOverlay per data object.
    Every engine result is committed to the store, which lets the
    overlay compare itself with the new canonical state.
    """

    def __init__(
        self,
        views: ViewRepository,
        fields: FieldRepository,
        workflows: WorkflowRepository,
        settings: Settings,
        metrics: Optional[MetricsCollector] = None,
        engine: Optional[ReconciliationEngine] = None,
    ):
        self._views = views
        self._fields = fields
        self._workflows = workflows
        self._metrics = metrics or get_metrics_collector()
        self.engine = engine or ReconciliationEngine(
            views, fields, workflows, settings=settings, metrics=self._metrics
        )
        self._stores: Dict[int, WorkspaceStore] = {}
        self._overlays: Dict[int, OptimisticOverlay] = {}

    # =========================================================================
    # Workspaces
    # =========================================================================

    async def store(self, object_id: int) -> WorkspaceStore:
        """Load (once) and return the workspace store for ``object_id``."""
        if object_id in self._stores:
            return self._stores[object_id]

        try:
            workflow = await self._workflows.read(object_id)
        except StorageNotFoundError:
            raise NotFoundError("WORKFLOW_NOT_FOUND", f"Workflow for object {object_id} not found")
        except PersistenceError as e:
            raise ServiceUnavailableError("storage", f"Could not load workflow {object_id}: {e}")

        try:
            views = await self._views.list(object_id)
        except PersistenceError as e:
            logger.warning(f"Could not list views for object {object_id}: {e}")
            views = []

        try:
            fields = await self._fields.list(object_id)
        except PersistenceError as e:
            logger.warning(f"Could not list fields for object {object_id}: {e}")
            fields = []

        workspace = Workspace(
            workflow=workflow,
            views=ViewRegistry(views),
            catalog=FieldCatalog.of(fields),
            object_id=object_id,
            route=f"/application/{object_id}",
        )
        store = WorkspaceStore(workspace)
        overlay = OptimisticOverlay(metrics=self._metrics)
        store.subscribe(overlay.reconcile)
        self._stores[object_id] = store
        self._overlays[object_id] = overlay
        logger.info(f"Loaded workspace for object {object_id}: {len(views)} views, {len(fields)} fields")
        return store

    def overlay(self, object_id: int) -> OptimisticOverlay:
        return self._overlays[object_id]

    async def field_groups(self, object_id: int) -> List[DisplayedGroup]:
        store = await self.store(object_id)
        overlay = self.overlay(object_id)
        displayed = []
        for group in build_field_groups(store.current):
            key = OverlayKey(TargetKind.VIEW, group.view_id) if group.is_view else OverlayKey(TargetKind.STEP, group.step_id)
            canonical = [ref.field_id for ref in group.field_refs]
            displayed.append(DisplayedGroup(
                group=group,
                field_ids=overlay.resolve(key, canonical),
                pending=key in overlay,
            ))
        return displayed

    def _commit(self, object_id: int, result: ReconciliationResult) -> Workspace:
        return self._stores[object_id].commit(result.workspace)

    def _overlay_key(self, workspace: Workspace, target: FieldTarget) -> OverlayKey:
        """Linked steps are displayed through their view, so share its key."""
        if target.kind is TargetKind.STEP:
            location = workspace.workflow.find_step(target.id)
            if location is not None and location.step.view_id in workspace.views:
                return OverlayKey(TargetKind.VIEW, location.step.view_id)
        return target

    def _expect(self, object_id: int, target: FieldTarget, order: Sequence[int]) -> None:
        """Show ``order`` for ``target`` until canonical data catches up."""
        workspace = self._stores[object_id].current
        key = self._overlay_key(workspace, target)
        self.overlay(object_id).apply(key, order, baseline=canonical_order(workspace, key))

    def _withdraw(self, object_id: int, target: FieldTarget) -> None:
        key = self._overlay_key(self._stores[object_id].current, target)
        self.overlay(object_id).withdraw(key)

    def _settle(self, object_id: int, target: FieldTarget, result: ReconciliationResult) -> None:
        if any(not effect.ok for effect in result.effects):
            key = self._overlay_key(self._stores[object_id].current, target)
            self.overlay(object_id).discard(key, reason="write failed")

    # =========================================================================
    # Intents
    # =========================================================================

    async def change_step_type(
        self,
        object_id: int,
        step_id: int,
        to_type: str,
        fields: Optional[List[FieldReference]] = None,
        name: Optional[str] = None,
    ) -> ReconciliationResult:
        store = await self.store(object_id)
        result = await self.engine.on_step_type_change(
            store.current, step_id, StepType.parse(to_type), provided_fields=fields, name=name
        )
        self._commit(object_id, result)
        return result

    async def attach_existing(
        self,
        object_id: int,
        target: FieldTarget,
        field_ids: List[int],
    ) -> ReconciliationResult:
        store = await self.store(object_id)
        expected = _attach_order(canonical_order(store.current, target), field_ids)
        if expected is not None:
            self._expect(object_id, target, expected)
        try:
            result = await self.engine.attach_existing_fields(store.current, target, field_ids)
        except CaseBuilderError:
            if expected is not None:
                self._withdraw(object_id, target)
            raise
        self._commit(object_id, result)
        self._settle(object_id, target, result)
        return result

    async def attach_new(
        self,
        object_id: int,
        target: FieldTarget,
        draft: FieldDraft,
    ) -> AttachmentResult:
        store = await self.store(object_id)
        result = await self.engine.attach_new_field(
            store.current, target, draft, latest=lambda: store.current
        )
        self._commit(object_id, result)
        return result

    async def reorder(
        self,
        object_id: int,
        target: FieldTarget,
        from_index: int,
        to_index: int,
    ) -> ReconciliationResult:
        store = await self.store(object_id)
        current = canonical_order(store.current, target)
        if current is not None and 0 <= from_index < len(current) and 0 <= to_index < len(current):
            expected = list(current)
            expected.insert(to_index, expected.pop(from_index))
            self._expect(object_id, target, expected)
        result = await self.engine.reorder_fields(store.current, target, from_index, to_index)
        self._commit(object_id, result)
        self._settle(object_id, target, result)
        return result

    async def remove_field(
        self,
        object_id: int,
        target: FieldTarget,
        field_id: int,
    ) -> ReconciliationResult:
        store = await self.store(object_id)
        result = await self.engine.remove_field(store.current, target, field_id)
        self._commit(object_id, result)
        return result

    def target_order(self, object_id: int, target: FieldTarget) -> Optional[List[int]]:
        """Canonical-plus-overlay order of ``target`` in the current workspace."""
        store = self._stores.get(object_id)
        if store is None:
            return None
        return self.overlay(object_id).view(store.current, self._overlay_key(store.current, target))
