"""Workflow editor endpoints: step types, field attachment and ordering."""

import logging

from fastapi import APIRouter, Depends

from casebuilder.api.v1.dependencies import get_editor_service
from casebuilder.api.v1.schemas import (
    AttachFieldsRequest,
    AttachNewFieldResponse,
    ErrorResponse,
    FieldGroupSchema,
    FieldGroupsResponse,
    FieldRefSchema,
    NewFieldRequest,
    ReconciliationResponse,
    ReorderRequest,
    StepTypeChangeRequest,
)
from casebuilder.api.v1.services.editor_service import EditorService
from casebuilder.domain.targets import FieldTarget, TargetKind


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["editor"])

_ERRORS = {
    400: {"model": ErrorResponse, "description": "Intent rejected"},
    404: {"model": ErrorResponse, "description": "Workflow, step or target not found"},
}


async def _target_response(
    service: EditorService,
    object_id: int,
    target: FieldTarget,
    result,
) -> ReconciliationResponse:
    store = await service.store(object_id)
    return ReconciliationResponse.build(
        object_id,
        store.version,
        result,
        field_ids=service.target_order(object_id, target),
    )


@router.get(
    "/{object_id}/field-groups",
    response_model=FieldGroupsResponse,
    summary="List field groups",
    description="Stored views sorted by name, followed by collecting steps without a view.",
    responses={404: _ERRORS[404]},
)
async def list_field_groups(
    object_id: int,
    service: EditorService = Depends(get_editor_service),
) -> FieldGroupsResponse:
    displayed = await service.field_groups(object_id)
    store = await service.store(object_id)
    return FieldGroupsResponse(
        object_id=object_id,
        version=store.version,
        groups=[
            FieldGroupSchema(
                key=d.group.key,
                name=d.group.name,
                stage_name=d.group.stage_name,
                view_id=d.group.view_id,
                step_id=d.group.step_id,
                is_view=d.group.is_view,
                field_ids=d.field_ids,
                field_refs=[FieldRefSchema.from_domain(ref) for ref in d.group.field_refs],
                pending=d.pending,
            )
            for d in displayed
        ],
    )


@router.post(
    "/{object_id}/steps/{step_id}/type",
    response_model=ReconciliationResponse,
    summary="Change step type",
    description="Applies a step dialog commit: type, name and field list.",
    responses=_ERRORS,
)
async def change_step_type(
    object_id: int,
    step_id: int,
    request: StepTypeChangeRequest,
    service: EditorService = Depends(get_editor_service),
) -> ReconciliationResponse:
    fields = (
        [ref.to_domain() for ref in request.field_refs]
        if request.field_refs is not None else None
    )
    result = await service.change_step_type(
        object_id, step_id, request.to_type, fields=fields, name=request.name
    )
    step = result.workspace.workflow.get_step(step_id).step
    store = await service.store(object_id)
    return ReconciliationResponse.build(
        object_id,
        store.version,
        result,
        field_ids=step.field_ids,
        step=step.to_dict(),
    )


@router.post(
    "/{object_id}/targets/{kind}/{target_id}/fields",
    response_model=ReconciliationResponse,
    summary="Attach existing fields",
    responses=_ERRORS,
)
async def attach_existing_fields(
    object_id: int,
    kind: TargetKind,
    target_id: int,
    request: AttachFieldsRequest,
    service: EditorService = Depends(get_editor_service),
) -> ReconciliationResponse:
    target = FieldTarget(kind, target_id)
    result = await service.attach_existing(object_id, target, request.field_ids)
    return await _target_response(service, object_id, target, result)


@router.post(
    "/{object_id}/targets/{kind}/{target_id}/fields/new",
    response_model=AttachNewFieldResponse,
    summary="Create and attach a new field",
    responses=_ERRORS,
)
async def attach_new_field(
    object_id: int,
    kind: TargetKind,
    target_id: int,
    request: NewFieldRequest,
    service: EditorService = Depends(get_editor_service),
) -> AttachNewFieldResponse:
    target = FieldTarget(kind, target_id)
    result = await service.attach_new(object_id, target, request.to_draft())
    store = await service.store(object_id)
    return AttachNewFieldResponse.build(
        object_id,
        store.version,
        result,
        field_ids=service.target_order(object_id, target),
        field_name=result.field_name,
        field_id=result.field_id,
        attached=result.attached,
        attempts=result.attempts,
    )


@router.post(
    "/{object_id}/targets/{kind}/{target_id}/fields/reorder",
    response_model=ReconciliationResponse,
    summary="Move one field",
    responses=_ERRORS,
)
async def reorder_fields(
    object_id: int,
    kind: TargetKind,
    target_id: int,
    request: ReorderRequest,
    service: EditorService = Depends(get_editor_service),
) -> ReconciliationResponse:
    target = FieldTarget(kind, target_id)
    result = await service.reorder(object_id, target, request.from_index, request.to_index)
    return await _target_response(service, object_id, target, result)


@router.delete(
    "/{object_id}/targets/{kind}/{target_id}/fields/{field_id}",
    response_model=ReconciliationResponse,
    summary="Remove a field",
    description="Detaches from a view target; deletes the field entirely for a step target.",
    responses=_ERRORS,
)
async def remove_field(
    object_id: int,
    kind: TargetKind,
    target_id: int,
    field_id: int,
    service: EditorService = Depends(get_editor_service),
) -> ReconciliationResponse:
    target = FieldTarget(kind, target_id)
    result = await service.remove_field(object_id, target, field_id)
    return await _target_response(service, object_id, target, result)
