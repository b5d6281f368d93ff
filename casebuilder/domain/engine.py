"""Reconciliation engine.

Keeps three representations of "which fields belong to which step"
consistent: the workflow tree (step field caches), persisted views, and
the field catalog. Each operation takes a Workspace, issues persistence
calls in order and returns the next Workspace together with the effects
it caused and any warnings.

Validation and lookup problems raise before anything is persisted.
Persistence failures never raise: they become warnings and the
workspace ends in the best state that is still well defined.
"""

import logging
from dataclasses import dataclass, field
from typing import (
    TYPE_CHECKING,
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    List,
    Optional,
    Sequence,
    Tuple,
    TypeVar,
    Union,
)

from casebuilder.domain.attachment import AttachmentResolver
from casebuilder.domain.catalog import FieldCatalog
from casebuilder.domain.errors import (
    ContainerNotFoundError,
    ErrorCode,
    InferenceError,
    TargetNotFoundError,
    ValidationError,
)
from casebuilder.domain.models import (
    Field,
    FieldDraft,
    FieldReference,
    FieldType,
    Step,
    StepType,
    View,
    ViewModel,
    dedupe_references,
    field_ids_of,
)
from casebuilder.domain.resolution import infer_object_id
from casebuilder.domain.results import (
    AttachmentResult,
    PersistenceEffect,
    ReconciliationResult,
    ReconciliationWarning,
    Severity,
    WarningCode,
)
from casebuilder.domain.targets import FieldTarget, TargetKind
from casebuilder.domain.views import ViewRegistry
from casebuilder.domain.workspace import Workspace
from casebuilder.observability.logging import ContextLogger, get_logger
from casebuilder.observability.metrics import MetricsCollector, get_metrics_collector
from casebuilder.persistence.errors import PersistenceError
from casebuilder.settings import Settings, get_settings

if TYPE_CHECKING:
    from casebuilder.persistence.repositories import (
        FieldRepository,
        ViewRepository,
        WorkflowRepository,
    )

logger = logging.getLogger(__name__)

T = TypeVar("T")

FieldRefInput = Union[FieldReference, int]


def _as_refs(items: Optional[Iterable[FieldRefInput]]) -> List[FieldReference]:
    refs = []
    for item in items or []:
        refs.append(item if isinstance(item, FieldReference) else FieldReference(int(item)))
    return dedupe_references(refs)


def _move(items: List[T], from_index: int, to_index: int) -> List[T]:
    """Single-element move: remove at ``from_index``, insert at ``to_index``."""
    size = len(items)
    if not (0 <= from_index < size) or not (0 <= to_index < size):
        raise ValidationError(
            ErrorCode.INDEX_OUT_OF_RANGE,
            f"Cannot move from {from_index} to {to_index} in a list of {size}",
        )
    moved = list(items)
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return moved


def _require_name(name: Optional[str]) -> str:
    if name is None or not name.strip():
        raise ValidationError(ErrorCode.EMPTY_NAME, "Name must not be empty")
    return name.strip()


@dataclass
class _Target:
    """A resolved field target and its authoritative field list."""
    target: FieldTarget
    refs: List[FieldReference]
    view: Optional[View] = None
    step: Optional[Step] = None

    @property
    def view_backed(self) -> bool:
        return self.view is not None

    @property
    def field_ids(self) -> List[int]:
        return field_ids_of(self.refs)


@dataclass
class _Transaction:
    """Working copy of a workspace for the duration of one operation."""
    base: Workspace
    operation: str
    log: ContextLogger
    effects: List[PersistenceEffect] = field(default_factory=list)
    warnings: List[ReconciliationWarning] = field(default_factory=list)
    workflow_changed: bool = False
    created_id: Optional[int] = None

    def __post_init__(self):
        self.workflow = self.base.workflow.clone()
        self.views: ViewRegistry = self.base.views
        self.catalog: FieldCatalog = self.base.catalog

    def warn(self, code: WarningCode, message: str, severity: Severity = Severity.WARNING) -> None:
        self.warnings.append(ReconciliationWarning(code=code, message=message, severity=severity))

    def snapshot(self) -> Workspace:
        return self.base.evolve(workflow=self.workflow, views=self.views, catalog=self.catalog)

    def result(self) -> ReconciliationResult:
        return ReconciliationResult(
            workspace=self.snapshot(),
            effects=self.effects,
            warnings=self.warnings,
            created_id=self.created_id,
        )


class ReconciliationEngine:
    """Applies editor intents to a workspace and its persistence collaborators."""

    def __init__(
        self,
        views: "ViewRepository",
        fields: "FieldRepository",
        workflows: "WorkflowRepository",
        resolver: Optional[AttachmentResolver] = None,
        settings: Optional[Settings] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self._views = views
        self._fields = fields
        self._workflows = workflows
        self._settings = settings or get_settings()
        self._metrics = metrics or get_metrics_collector()
        self._resolver = resolver or AttachmentResolver(
            fields,
            poll_interval_s=self._settings.attachment_poll_interval_s,
            max_attempts=self._settings.attachment_max_attempts,
            metrics=self._metrics,
        )
        self._log = get_logger(__name__)

    # =========================================================================
    # Plumbing
    # =========================================================================

    def _begin(self, workspace: Workspace, operation: str) -> _Transaction:
        self._metrics.record_operation(operation)
        return _Transaction(
            base=workspace,
            operation=operation,
            log=self._log.with_context(object_id=workspace.object_id, operation=operation),
        )

    async def _persist(
        self,
        tx: _Transaction,
        resource: str,
        operation: str,
        target_id: Any,
        call: Callable[[], Awaitable[T]],
        warning: WarningCode,
    ) -> Tuple[bool, Optional[T]]:
        """Run one collaborator call, turning PersistenceError into a warning."""
        try:
            value = await call()
        except PersistenceError as e:
            self._metrics.record_persistence_call(resource, operation, ok=False)
            tx.effects.append(PersistenceEffect(resource, operation, target_id, ok=False, detail=str(e)))
            tx.warn(warning, f"{resource} {operation} failed for {target_id}: {e}")
            tx.log.warning(f"{resource} {operation} failed for {target_id}: {e}")
            return False, None
        self._metrics.record_persistence_call(resource, operation, ok=True)
        tx.effects.append(PersistenceEffect(resource, operation, target_id))
        return True, value

    async def _save_workflow(self, tx: _Transaction) -> None:
        """Persist the stage tree once, after every view call of the operation."""
        if not tx.workflow_changed:
            return
        object_id = tx.base.object_id
        if object_id is None:
            tx.log.debug("Workspace has no object id; workflow kept local")
            return
        workflow = tx.workflow
        await self._persist(
            tx, "workflow", "save", object_id,
            lambda: self._workflows.save(object_id, workflow),
            WarningCode.WORKFLOW_SAVE_FAILED,
        )

    async def _delete_view(self, tx: _Transaction, view_id: int) -> bool:
        ok, _ = await self._persist(
            tx, "view", "delete", view_id,
            lambda: self._views.delete(view_id),
            WarningCode.VIEW_DELETE_FAILED,
        )
        if ok:
            tx.views = tx.views.without(view_id)
            tx.log.info(f"Deleted view {view_id}", view_id=view_id)
        return ok

    async def _link_new_view(self, tx: _Transaction, step: Step, refs: List[FieldReference]) -> None:
        """Create a view for a step entering the collecting type and link it."""
        try:
            object_id = infer_object_id(tx.snapshot())
        except InferenceError as e:
            tx.warn(WarningCode.OBJECT_ID_UNRESOLVED, e.message, Severity.ERROR)
            tx.log.error(f"Step {step.id} left unlinked: {e.message}", step_id=step.id)
            return

        name = step.name
        ok, view_id = await self._persist(
            tx, "view", "create", step.id,
            lambda: self._views.create(name, object_id, ViewModel()),
            WarningCode.VIEW_CREATE_FAILED,
        )
        if not ok:
            return

        view = View(id=view_id, name=name, object_id=object_id, model=ViewModel())
        tx.views = tx.views.with_view(view)
        step.link(view_id)
        tx.log.info(f"Linked step {step.id} to new view {view_id}", step_id=step.id, view_id=view_id)

        if refs:
            await self._write_view(tx, view, refs)

    async def _write_view(self, tx: _Transaction, view: View, refs: Sequence[FieldReference]) -> bool:
        """Persist a view's field list and sync the caches of its linked steps."""
        updated = view.with_fields(refs)
        ok, _ = await self._persist(
            tx, "view", "update", view.id,
            lambda: self._views.update(updated),
            WarningCode.VIEW_UPDATE_FAILED,
        )
        if not ok:
            return False
        tx.views = tx.views.with_view(updated)
        self._sync_linked_steps(tx, updated)
        return True

    def _sync_linked_steps(self, tx: _Transaction, view: View) -> None:
        wanted = [(ref.field_id, ref.required) for ref in view.model.fields]
        for step in tx.workflow.steps_linked_to(view.id):
            if [(ref.field_id, ref.required) for ref in step.fields] != wanted:
                step.set_fields(view.model.fields)
                tx.workflow_changed = True

    async def _resolve_target(self, tx: _Transaction, target: FieldTarget) -> _Target:
        """
        Locate the authoritative field list for ``target``.

        A linked step resolves to its view. A view absent from the local
        registry is read from storage; if that read fails the linked
        step's cached list stands in for it.
        """
        if target.kind is TargetKind.STEP:
            step = tx.workflow.get_step(target.id).step
            if not step.collects_fields:
                raise ValidationError(
                    ErrorCode.STEP_NOT_COLLECTING,
                    f"Step {step.id} of type '{step.type.value}' does not collect fields",
                )
            if step.view_id is None:
                return _Target(target=target, refs=step.fields, step=step)
            return await self._resolve_view(tx, target, step.view_id, [step])

        linked = tx.workflow.steps_linked_to(target.id)
        return await self._resolve_view(tx, target, target.id, linked)

    async def _resolve_view(
        self,
        tx: _Transaction,
        target: FieldTarget,
        view_id: int,
        linked: List[Step],
    ) -> _Target:
        view = tx.views.get(view_id)
        if view is not None:
            return _Target(target=target, refs=list(view.model.fields), view=view)
        if not linked:
            raise TargetNotFoundError(f"View {view_id} is not known", ErrorCode.TARGET_NOT_FOUND)

        ok, view = await self._persist(
            tx, "view", "read", view_id,
            lambda: self._views.read(view_id),
            WarningCode.VIEW_READ_FAILED,
        )
        if ok and view is not None:
            tx.views = tx.views.with_view(view)
            return _Target(target=target, refs=list(view.model.fields), view=view)

        step = linked[0]
        tx.log.warning(
            f"Using cached fields of step {step.id} for unreadable view {view_id}",
            step_id=step.id,
            view_id=view_id,
        )
        return _Target(target=target, refs=step.fields, step=step)

    async def _write_target(self, tx: _Transaction, resolved: _Target, refs: Sequence[FieldReference]) -> bool:
        if resolved.view is not None:
            return await self._write_view(tx, resolved.view, refs)
        resolved.step.set_fields(refs)
        tx.workflow_changed = True
        return True

    # =========================================================================
    # Step type transitions
    # =========================================================================

    async def on_step_type_change(
        self,
        workspace: Workspace,
        step_id: int,
        to_type: Union[StepType, str],
        provided_fields: Optional[Iterable[FieldRefInput]] = None,
        from_type: Optional[Union[StepType, str]] = None,
        name: Optional[str] = None,
    ) -> ReconciliationResult:
        """
        Move a step to ``to_type`` and bring its view link in line.

        Entering the collecting type creates a fresh view (never reusing
        an old link) and fills it from ``provided_fields``. Leaving it
        deletes the linked view and clears the step's fields. Staying
        collecting pushes ``provided_fields`` (when given) to the view.
        """
        new_type = StepType.parse(to_type)
        new_name = _require_name(name) if name is not None else None
        tx = self._begin(workspace, "on_step_type_change")
        step = tx.workflow.get_step(step_id).step
        old_type = StepType.parse(from_type) if from_type is not None else step.type
        refs = _as_refs(provided_fields)

        step.type = new_type
        if new_name is not None:
            step.name = new_name
        tx.workflow_changed = True
        log = tx.log.with_context(step_id=step_id)

        if new_type.collects_fields and not old_type.collects_fields:
            log.info(f"Step {step_id} now collects fields")
            step.unlink()
            await self._link_new_view(tx, step, refs)

        elif old_type.collects_fields and not new_type.collects_fields:
            old_view_id = step.view_id
            if old_view_id is not None:
                await self._delete_view(tx, old_view_id)
            step.unlink()
            log.info(f"Step {step_id} no longer collects fields")

        elif new_type.collects_fields:
            await self._update_collecting_step(tx, step, refs if provided_fields is not None else None)

        else:
            step.unlink()

        await self._save_workflow(tx)
        return tx.result()

    async def _update_collecting_step(
        self,
        tx: _Transaction,
        step: Step,
        refs: Optional[List[FieldReference]],
    ) -> None:
        if step.view_id is None:
            if refs is not None:
                step.unlink(refs)
            return

        resolved = await self._resolve_view(tx, FieldTarget.step(step.id), step.view_id, [step])
        if resolved.view is None:
            if refs is not None:
                step.set_fields(refs)
            return

        view = resolved.view
        desired = dedupe_references(refs if refs is not None else view.model.fields)
        if view.name == step.name and desired == dedupe_references(view.model.fields):
            # Nothing to push; only the cache may be behind
            self._sync_linked_steps(tx, view)
            return
        if view.name != step.name:
            view = View(id=view.id, name=step.name, object_id=view.object_id, model=view.model)
        written = await self._write_view(tx, view, desired)
        if not written:
            # Storage still holds the old list; keep the cache aligned with it
            step.set_fields(resolved.view.model.fields)

    # =========================================================================
    # Field attachment
    # =========================================================================

    async def attach_existing_fields(
        self,
        workspace: Workspace,
        target: FieldTarget,
        field_ids: Sequence[int],
    ) -> ReconciliationResult:
        """
        Attach catalog fields to a target.

        If ``field_ids`` is a permutation of the current list the order is
        replaced wholesale. Otherwise only ids not yet present are
        appended at the end.
        """
        if not field_ids:
            raise ValidationError(ErrorCode.NO_FIELD_SELECTED, "Select at least one field")
        tx = self._begin(workspace, "attach_existing_fields")
        resolved = await self._resolve_target(tx, target)
        current = resolved.field_ids
        requested = field_ids_of(_as_refs(field_ids))

        if len(requested) == len(current) and set(requested) == set(current):
            if requested == current:
                return tx.result()
            by_id = {ref.field_id: ref for ref in resolved.refs}
            refs = [by_id[field_id] for field_id in requested]
            tx.log.info(f"Reordering fields of {target}")
        else:
            missing = [field_id for field_id in requested if field_id not in current]
            if not missing:
                return tx.result()
            refs = resolved.refs + [FieldReference(field_id) for field_id in missing]
            tx.log.info(f"Appending fields {missing} to {target}")

        await self._write_target(tx, resolved, refs)
        await self._save_workflow(tx)
        return tx.result()

    async def attach_new_field(
        self,
        workspace: Workspace,
        target: FieldTarget,
        draft: FieldDraft,
        latest: Optional[Callable[[], Workspace]] = None,
    ) -> AttachmentResult:
        """
        Create a field and attach it to ``target`` once it can be resolved.

        Creation reports only the field name, so the id is found by
        polling the catalog. The attach is applied to ``latest()`` (the
        newest workspace at resolution time) rather than the input.
        """
        draft.validate()
        self._check_target(workspace, target)
        self._metrics.record_operation("attach_new_field")
        log = self._log.with_context(object_id=workspace.object_id, operation="attach_new_field")

        effects: List[PersistenceEffect] = []
        warnings: List[ReconciliationWarning] = []
        object_id = workspace.object_id
        if object_id is None:
            try:
                object_id = infer_object_id(workspace)
            except InferenceError:
                object_id = None

        try:
            created = await self._fields.create(draft, object_id)
        except PersistenceError as e:
            self._metrics.record_persistence_call("field", "create", ok=False)
            log.warning(f"Field create failed for '{draft.label}': {e}")
            return AttachmentResult(
                workspace=workspace,
                effects=[PersistenceEffect("field", "create", draft.label, ok=False, detail=str(e))],
                warnings=[ReconciliationWarning(WarningCode.FIELD_CREATE_FAILED, f"Field create failed: {e}")],
            )
        self._metrics.record_persistence_call("field", "create", ok=True)
        effects.append(PersistenceEffect("field", "create", created.name))
        log.info(f"Created field '{created.name}'", field_name=created.name)

        attempts = 0
        if created.id is not None:
            new_field = Field(
                id=created.id,
                name=created.name,
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
            catalog = workspace.catalog.with_field(new_field)
        else:
            resolution = await self._resolver.resolve(created.name, workspace.catalog, object_id)
            attempts = resolution.attempts
            catalog = resolution.catalog
            new_field = resolution.field
            if resolution.refresh_failures:
                warnings.append(ReconciliationWarning(
                    WarningCode.CATALOG_REFRESH_FAILED,
                    f"{resolution.refresh_failures} catalog refresh(es) failed while resolving '{created.name}'",
                ))

        base = latest() if latest is not None else workspace
        base = base.evolve(catalog=catalog)

        if new_field is None:
            warnings.append(ReconciliationWarning(
                WarningCode.ATTACHMENT_UNRESOLVED,
                f"Field '{created.name}' was created but could not be attached after {attempts} attempts",
            ))
            return AttachmentResult(
                workspace=base,
                effects=effects,
                warnings=warnings,
                field_name=created.name,
                attempts=attempts,
            )

        tx = _Transaction(base=base, operation="attach_new_field", log=log)
        tx.effects.extend(effects)
        tx.warnings.extend(warnings)
        attached = await self._attach_resolved(tx, target, new_field, draft.required)
        await self._save_workflow(tx)

        result = tx.result()
        return AttachmentResult(
            workspace=result.workspace,
            effects=result.effects,
            warnings=result.warnings,
            field_name=created.name,
            field=new_field,
            attached=attached,
            attempts=attempts,
        )

    async def _attach_resolved(
        self,
        tx: _Transaction,
        target: FieldTarget,
        new_field: Field,
        required: bool,
    ) -> bool:
        try:
            resolved = await self._resolve_target(tx, target)
        except TargetNotFoundError as e:
            tx.warn(WarningCode.VIEW_NOT_FOUND, f"Field '{new_field.name}' not attached: {e.message}")
            tx.log.warning(f"Target {target} disappeared before field '{new_field.name}' resolved")
            return False

        if new_field.id in resolved.field_ids:
            return True

        refs = resolved.refs + [FieldReference(new_field.id, required=required)]
        if await self._write_target(tx, resolved, refs):
            tx.log.info(f"Attached field {new_field.id} to {target}", field_id=new_field.id)
            return True

        if not self._settings.fallback_to_step:
            return False

        linked = tx.workflow.steps_linked_to(resolved.view.id)
        if not linked:
            return False
        for step in linked:
            step.set_fields(refs)
        tx.workflow_changed = True
        tx.warn(
            WarningCode.ATTACHED_TO_STEP_FALLBACK,
            f"Field {new_field.id} attached to the step cache only; view {resolved.view.id} is stale",
        )
        return True

    def _check_target(self, workspace: Workspace, target: FieldTarget) -> None:
        """Synchronous target validation, before any persistence call."""
        if target.kind is TargetKind.STEP:
            step = workspace.workflow.get_step(target.id).step
            if not step.collects_fields:
                raise ValidationError(
                    ErrorCode.STEP_NOT_COLLECTING,
                    f"Step {step.id} of type '{step.type.value}' does not collect fields",
                )
            return
        if target.id not in workspace.views and not workspace.workflow.steps_linked_to(target.id):
            raise TargetNotFoundError(f"View {target.id} is not known", ErrorCode.TARGET_NOT_FOUND)

    # =========================================================================
    # Field list edits
    # =========================================================================

    async def reorder_fields(
        self,
        workspace: Workspace,
        target: FieldTarget,
        from_index: int,
        to_index: int,
    ) -> ReconciliationResult:
        """Move one field within the target's authoritative list."""
        tx = self._begin(workspace, "reorder_fields")
        resolved = await self._resolve_target(tx, target)
        refs = _move(resolved.refs, from_index, to_index)
        if from_index == to_index:
            return tx.result()
        await self._write_target(tx, resolved, refs)
        await self._save_workflow(tx)
        return tx.result()

    async def remove_field(
        self,
        workspace: Workspace,
        target: FieldTarget,
        field_id: int,
    ) -> ReconciliationResult:
        """
        Remove a field from a target.

        For a view target the field is only detached from that view. For
        a step target the field itself is deleted from the catalog and
        every reference to it is stripped.
        """
        if target.kind is TargetKind.VIEW:
            tx = self._begin(workspace, "remove_field")
            resolved = await self._resolve_target(tx, target)
            if field_id not in resolved.field_ids:
                raise ValidationError(
                    ErrorCode.FIELD_NOT_IN_TARGET, f"Field {field_id} is not part of {target}"
                )
            refs = [ref for ref in resolved.refs if ref.field_id != field_id]
            await self._write_target(tx, resolved, refs)
            await self._save_workflow(tx)
            return tx.result()

        self._check_target(workspace, target)
        if field_id not in workspace.workflow.get_step(target.id).step.field_ids:
            raise ValidationError(
                ErrorCode.FIELD_NOT_IN_TARGET, f"Field {field_id} is not part of {target}"
            )
        tx = self._begin(workspace, "remove_field")
        ok, _ = await self._persist(
            tx, "field", "delete", field_id,
            lambda: self._fields.delete(field_id),
            WarningCode.FIELD_DELETE_FAILED,
        )
        if not ok:
            return tx.result()

        tx.catalog = tx.catalog.without(field_id)
        for location in tx.workflow.iter_steps():
            step = location.step
            if field_id in step.field_ids:
                step.set_fields(ref for ref in step.fields if ref.field_id != field_id)
                tx.workflow_changed = True
        for view in list(tx.views):
            if field_id in view.field_ids:
                await self._write_view(
                    tx, view, [ref for ref in view.model.fields if ref.field_id != field_id]
                )
        tx.log.info(f"Deleted field {field_id}", field_id=field_id)
        await self._save_workflow(tx)
        return tx.result()

    async def set_field_required(
        self,
        workspace: Workspace,
        target: FieldTarget,
        field_id: int,
        required: bool,
    ) -> ReconciliationResult:
        """Change the binding-local ``required`` flag of one field."""
        tx = self._begin(workspace, "set_field_required")
        resolved = await self._resolve_target(tx, target)
        if field_id not in resolved.field_ids:
            raise ValidationError(
                ErrorCode.FIELD_NOT_IN_TARGET, f"Field {field_id} is not part of {target}"
            )
        if all(ref.required == required for ref in resolved.refs if ref.field_id == field_id):
            return tx.result()
        refs = [
            FieldReference(ref.field_id, required, ref.order) if ref.field_id == field_id else ref
            for ref in resolved.refs
        ]
        await self._write_target(tx, resolved, refs)
        await self._save_workflow(tx)
        return tx.result()

    async def update_field(
        self,
        workspace: Workspace,
        field_id: int,
        changes: Dict[str, Any],
    ) -> ReconciliationResult:
        """Partially update a catalog field, then refresh the catalog snapshot."""
        if "label" in changes and not str(changes["label"] or "").strip():
            raise ValidationError(ErrorCode.EMPTY_LABEL, "Field label must not be empty")
        if "name" in changes and not str(changes["name"] or "").strip():
            raise ValidationError(ErrorCode.EMPTY_NAME, "Field name must not be empty")
        if "type" in changes:
            changes = {**changes, "type": FieldType.parse(changes["type"]).value}

        tx = self._begin(workspace, "update_field")
        ok, _ = await self._persist(
            tx, "field", "update", field_id,
            lambda: self._fields.update(field_id, changes),
            WarningCode.FIELD_UPDATE_FAILED,
        )
        if not ok:
            return tx.result()

        object_id = workspace.object_id
        ok, fields = await self._persist(
            tx, "field", "list", object_id,
            lambda: self._fields.list(object_id),
            WarningCode.CATALOG_REFRESH_FAILED,
        )
        if ok:
            tx.catalog = tx.catalog.refreshed(fields)
        return tx.result()

    # =========================================================================
    # Workflow containers
    # =========================================================================

    async def add_step(
        self,
        workspace: Workspace,
        stage_id: int,
        process_id: int,
        name: str,
        step_type: Union[StepType, str],
        initial_fields: Optional[Iterable[FieldRefInput]] = None,
    ) -> ReconciliationResult:
        """Append a step to a process; collecting steps get a view first."""
        step_name = _require_name(name)
        new_type = StepType.parse(step_type)
        tx = self._begin(workspace, "add_step")
        process = tx.workflow.find_process(stage_id, process_id)
        if process is None:
            raise ContainerNotFoundError(f"Process {process_id} not found in stage {stage_id}")

        step = Step(id=tx.workflow.next_step_id(), name=step_name, type=new_type)
        process.steps.append(step)
        tx.workflow_changed = True
        tx.created_id = step.id
        if new_type.collects_fields:
            await self._link_new_view(tx, step, _as_refs(initial_fields))

        await self._save_workflow(tx)
        return tx.result()

    async def _drop_views_of(self, tx: _Transaction, steps: Iterable[Step]) -> None:
        for step in steps:
            if step.view_id is not None:
                await self._delete_view(tx, step.view_id)

    async def delete_step(self, workspace: Workspace, step_id: int) -> ReconciliationResult:
        tx = self._begin(workspace, "delete_step")
        location = tx.workflow.get_step(step_id)
        location.process.steps.remove(location.step)
        tx.workflow_changed = True
        await self._drop_views_of(tx, [location.step])
        await self._save_workflow(tx)
        return tx.result()

    async def delete_process(self, workspace: Workspace, stage_id: int, process_id: int) -> ReconciliationResult:
        tx = self._begin(workspace, "delete_process")
        stage = tx.workflow.find_stage(stage_id)
        process = tx.workflow.find_process(stage_id, process_id)
        if stage is None or process is None:
            raise ContainerNotFoundError(f"Process {process_id} not found in stage {stage_id}")
        stage.processes.remove(process)
        tx.workflow_changed = True
        await self._drop_views_of(tx, process.steps)
        await self._save_workflow(tx)
        return tx.result()

    async def delete_stage(self, workspace: Workspace, stage_id: int) -> ReconciliationResult:
        tx = self._begin(workspace, "delete_stage")
        stage = tx.workflow.find_stage(stage_id)
        if stage is None:
            raise ContainerNotFoundError(f"Stage {stage_id} not found")
        tx.workflow.stages.remove(stage)
        tx.workflow_changed = True
        await self._drop_views_of(tx, (s for p in stage.processes for s in p.steps))
        await self._save_workflow(tx)
        return tx.result()

    async def reorder_stages(self, workspace: Workspace, from_index: int, to_index: int) -> ReconciliationResult:
        tx = self._begin(workspace, "reorder_stages")
        tx.workflow.stages = _move(tx.workflow.stages, from_index, to_index)
        tx.workflow_changed = from_index != to_index
        await self._save_workflow(tx)
        return tx.result()

    async def reorder_processes(
        self,
        workspace: Workspace,
        stage_id: int,
        from_index: int,
        to_index: int,
    ) -> ReconciliationResult:
        tx = self._begin(workspace, "reorder_processes")
        stage = tx.workflow.find_stage(stage_id)
        if stage is None:
            raise ContainerNotFoundError(f"Stage {stage_id} not found")
        stage.processes = _move(stage.processes, from_index, to_index)
        tx.workflow_changed = from_index != to_index
        await self._save_workflow(tx)
        return tx.result()

    async def reorder_steps(
        self,
        workspace: Workspace,
        stage_id: int,
        process_id: int,
        from_index: int,
        to_index: int,
    ) -> ReconciliationResult:
        tx = self._begin(workspace, "reorder_steps")
        process = tx.workflow.find_process(stage_id, process_id)
        if process is None:
            raise ContainerNotFoundError(f"Process {process_id} not found in stage {stage_id}")
        process.steps = _move(process.steps, from_index, to_index)
        tx.workflow_changed = from_index != to_index
        await self._save_workflow(tx)
        return tx.result()
