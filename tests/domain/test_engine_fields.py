"""Tests for field attachment and field list edits in the reconciliation engine."""

import pytest

from casebuilder.domain.engine import ReconciliationEngine
from casebuilder.domain.errors import ErrorCode, TargetNotFoundError, ValidationError
from casebuilder.domain.models import FieldDraft, FieldReference, FieldType
from casebuilder.domain.results import WarningCode
from casebuilder.domain.targets import FieldTarget
from casebuilder.domain.views import ViewRegistry
from casebuilder.settings import Settings


VIEW_100 = FieldTarget.view(100)


class TestAttachExistingFields:
    """Tests for attach_existing_fields."""

    @pytest.mark.asyncio
    async def test_permutation_reorders(self, engine, workspace, view_repo):
        result = await engine.attach_existing_fields(workspace, VIEW_100, [2, 1])

        assert view_repo.get(100).field_ids == [2, 1]
        assert result.workspace.workflow.get_step(1).step.field_ids == [2, 1]

    @pytest.mark.asyncio
    async def test_new_ids_appended(self, engine, workspace, view_repo):
        result = await engine.attach_existing_fields(workspace, VIEW_100, [3])

        assert view_repo.get(100).field_ids == [1, 2, 3]
        assert result.workspace.views.get(100).field_ids == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_subset_is_noop(self, engine, workspace, view_repo, workflow_repo):
        result = await engine.attach_existing_fields(workspace, VIEW_100, [1])

        assert result.effects == []
        assert view_repo.calls_to("update") == []
        assert workflow_repo.calls_to("save") == []
        assert result.workspace.views.get(100).field_ids == [1, 2]

    @pytest.mark.asyncio
    async def test_duplicates_in_request_collapsed(self, engine, workspace, view_repo):
        await engine.attach_existing_fields(workspace, VIEW_100, [4, 4, 1])

        assert view_repo.get(100).field_ids == [1, 2, 4]

    @pytest.mark.asyncio
    async def test_empty_selection_rejected(self, engine, workspace):
        with pytest.raises(ValidationError) as exc_info:
            await engine.attach_existing_fields(workspace, VIEW_100, [])

        assert exc_info.value.code == ErrorCode.NO_FIELD_SELECTED

    @pytest.mark.asyncio
    async def test_unlinked_step_target(self, engine, workspace, view_repo, workflow_repo):
        result = await engine.attach_existing_fields(workspace, FieldTarget.step(3), [4])

        assert result.workspace.workflow.get_step(3).step.field_ids == [3, 4]
        assert workflow_repo.get(7).get_step(3).step.field_ids == [3, 4]
        assert view_repo.calls_to("update") == []

    @pytest.mark.asyncio
    async def test_linked_step_target_writes_view(self, engine, workspace, view_repo):
        await engine.attach_existing_fields(workspace, FieldTarget.step(1), [3])

        assert view_repo.get(100).field_ids == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_non_collecting_step_rejected(self, engine, workspace):
        with pytest.raises(ValidationError) as exc_info:
            await engine.attach_existing_fields(workspace, FieldTarget.step(2), [1])

        assert exc_info.value.code == ErrorCode.STEP_NOT_COLLECTING

    @pytest.mark.asyncio
    async def test_unknown_view_rejected(self, engine, workspace):
        with pytest.raises(TargetNotFoundError):
            await engine.attach_existing_fields(workspace, FieldTarget.view(999), [1])

    @pytest.mark.asyncio
    async def test_unregistered_view_read_from_storage(self, engine, workspace, view_repo):
        result = await engine.attach_existing_fields(workspace.evolve(views=ViewRegistry()), VIEW_100, [4])

        assert [e.operation for e in result.effects_for("view")] == ["read", "update"]
        assert view_repo.get(100).field_ids == [1, 2, 4]

    @pytest.mark.asyncio
    async def test_unreadable_view_falls_back_to_step_cache(self, engine, workspace, view_repo):
        view_repo.fail("read")

        result = await engine.attach_existing_fields(workspace.evolve(views=ViewRegistry()), VIEW_100, [4])

        assert result.has_warning(WarningCode.VIEW_READ_FAILED)
        assert result.workspace.workflow.get_step(1).step.field_ids == [1, 2, 4]
        assert result.workspace.workflow.get_step(1).step.view_id == 100
        assert view_repo.get(100).field_ids == [1, 2]


class TestAttachNewField:
    """Tests for attach_new_field."""

    @pytest.mark.asyncio
    async def test_resolves_after_polling_and_attaches_once(self, engine, workspace, field_repo, view_repo, sleep):
        field_repo.visibility_delay = 2

        result = await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label="Date of Birth", type=FieldType.DATE))

        assert result.field_name == "date_of_birth"
        assert result.field_id == 5
        assert result.attempts == 3
        assert result.attached is True
        assert len(sleep.delays) == 3
        assert view_repo.get(100).field_ids == [1, 2, 5]
        assert view_repo.get(100).field_ids.count(5) == 1
        assert result.workspace.workflow.get_step(1).step.field_ids == [1, 2, 5]
        assert 5 in result.workspace.catalog

    @pytest.mark.asyncio
    async def test_reported_id_skips_polling(self, engine, workspace, field_repo, view_repo, sleep):
        field_repo.return_ids = True

        result = await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label="Income", required=True))

        assert result.attempts == 0
        assert sleep.delays == []
        assert field_repo.calls_to("list") == []
        assert view_repo.get(100).model.fields[-1] == FieldReference(5, True, 3)

    @pytest.mark.asyncio
    async def test_name_collision_gets_suffix(self, engine, workspace, view_repo):
        result = await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label="Email"))

        assert result.field_name == "email_2"
        assert view_repo.get(100).field_ids == [1, 2, 5]

    @pytest.mark.asyncio
    async def test_exhaustion_leaves_field_unattached(self, engine, workspace, field_repo, view_repo, sleep, metrics):
        field_repo.visibility_delay = 100

        result = await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label="Late"))

        assert result.attached is False
        assert result.attempts == 25
        assert len(sleep.delays) == 25
        assert result.has_warning(WarningCode.ATTACHMENT_UNRESOLVED)
        assert view_repo.get(100).field_ids == [1, 2]
        assert field_repo.by_name("late") is not None
        assert metrics.get_metrics().attachments_exhausted == 1

    @pytest.mark.asyncio
    async def test_create_failure(self, engine, workspace, field_repo, view_repo):
        field_repo.fail("create")

        result = await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label="Income"))

        assert result.has_warning(WarningCode.FIELD_CREATE_FAILED)
        assert result.workspace is workspace
        assert view_repo.calls == []

    @pytest.mark.asyncio
    async def test_blank_label_rejected_before_create(self, engine, workspace, field_repo):
        with pytest.raises(ValidationError) as exc_info:
            await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label=" "))

        assert exc_info.value.code == ErrorCode.EMPTY_LABEL
        assert field_repo.calls == []

    @pytest.mark.asyncio
    async def test_applies_to_latest_workspace(self, engine, workspace, applicant_view, view_repo):
        reordered = applicant_view.with_fields([FieldReference(2), FieldReference(1)])
        latest = workspace.evolve(views=workspace.views.with_view(reordered))

        await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label="Income"), latest=lambda: latest)

        assert view_repo.get(100).field_ids == [2, 1, 5]

    @pytest.mark.asyncio
    async def test_target_gone_by_resolution_time(self, engine, workspace, view_repo):
        workflow = workspace.workflow.clone()
        location = workflow.get_step(1)
        location.process.steps.remove(location.step)
        latest = workspace.evolve(workflow=workflow, views=ViewRegistry())

        result = await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label="Income"), latest=lambda: latest)

        assert result.attached is False
        assert result.has_warning(WarningCode.VIEW_NOT_FOUND)
        assert result.field_id == 5

    @pytest.mark.asyncio
    async def test_step_target(self, engine, workspace):
        result = await engine.attach_new_field(workspace, FieldTarget.step(3), FieldDraft(label="Comment"))

        assert result.workspace.workflow.get_step(3).step.field_ids == [3, 5]

    @pytest.mark.asyncio
    async def test_view_write_failure_stops_by_default(self, engine, workspace, view_repo):
        view_repo.fail("update")

        result = await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label="Income"))

        assert result.attached is False
        assert result.has_warning(WarningCode.VIEW_UPDATE_FAILED)
        assert result.workspace.workflow.get_step(1).step.field_ids == [1, 2]

    @pytest.mark.asyncio
    async def test_view_write_failure_falls_back_to_step(
        self, view_repo, field_repo, workflow_repo, resolver, metrics, workspace
    ):
        engine = ReconciliationEngine(
            view_repo, field_repo, workflow_repo,
            resolver=resolver,
            settings=Settings(attachment_poll_interval_ms=0, attachment_exhausted_policy="fallback_to_step"),
            metrics=metrics,
        )
        view_repo.fail("update")

        result = await engine.attach_new_field(workspace, VIEW_100, FieldDraft(label="Income"))

        assert result.attached is True
        assert result.has_warning(WarningCode.ATTACHED_TO_STEP_FALLBACK)
        assert result.workspace.workflow.get_step(1).step.field_ids == [1, 2, 5]
        assert workflow_repo.get(7).get_step(1).step.field_ids == [1, 2, 5]


class TestReorderFields:
    """Tests for reorder_fields."""

    @pytest.mark.asyncio
    async def test_single_move(self, engine, workspace, view_repo):
        await engine.attach_existing_fields(workspace, VIEW_100, [3, 4])
        workspace = workspace.evolve(views=ViewRegistry([view_repo.get(100)]))

        await engine.reorder_fields(workspace, VIEW_100, 3, 0)

        assert view_repo.get(100).field_ids == [4, 1, 2, 3]

    @pytest.mark.asyncio
    async def test_same_index_is_identity(self, engine, workspace, view_repo):
        result = await engine.reorder_fields(workspace, VIEW_100, 0, 0)

        assert result.effects == []
        assert result.workspace.views.get(100).field_ids == [1, 2]

    @pytest.mark.asyncio
    async def test_out_of_range(self, engine, workspace, view_repo):
        with pytest.raises(ValidationError) as exc_info:
            await engine.reorder_fields(workspace, VIEW_100, 0, 2)

        assert exc_info.value.code == ErrorCode.INDEX_OUT_OF_RANGE
        assert view_repo.calls_to("update") == []

    @pytest.mark.asyncio
    async def test_linked_step_target_moves_view_fields(self, engine, workspace, view_repo):
        result = await engine.reorder_fields(workspace, FieldTarget.step(1), 1, 0)

        assert view_repo.get(100).field_ids == [2, 1]
        assert result.workspace.workflow.get_step(1).step.field_ids == [2, 1]


class TestRemoveField:
    """Tests for remove_field."""

    @pytest.mark.asyncio
    async def test_view_target_detaches_only(self, engine, workspace, view_repo, field_repo):
        result = await engine.remove_field(workspace, VIEW_100, 1)

        assert view_repo.get(100).field_ids == [2]
        assert result.workspace.workflow.get_step(1).step.field_ids == [2]
        assert field_repo.get(1) is not None
        assert 1 in result.workspace.catalog

    @pytest.mark.asyncio
    async def test_view_target_missing_field(self, engine, workspace):
        with pytest.raises(ValidationError) as exc_info:
            await engine.remove_field(workspace, VIEW_100, 3)

        assert exc_info.value.code == ErrorCode.FIELD_NOT_IN_TARGET

    @pytest.mark.asyncio
    async def test_step_target_deletes_field(self, engine, workspace, field_repo, workflow_repo):
        result = await engine.remove_field(workspace, FieldTarget.step(3), 3)

        assert field_repo.get(3) is None
        assert 3 not in result.workspace.catalog
        assert result.workspace.workflow.get_step(3).step.fields == []
        assert workflow_repo.get(7).get_step(3).step.fields == []

    @pytest.mark.asyncio
    async def test_step_target_strips_every_reference(self, engine, workspace, view_repo):
        result = await engine.remove_field(workspace, FieldTarget.step(1), 1)

        assert view_repo.get(100).field_ids == [2]
        assert result.workspace.workflow.get_step(1).step.field_ids == [2]

    @pytest.mark.asyncio
    async def test_delete_failure_changes_nothing(self, engine, workspace, field_repo, workflow_repo):
        field_repo.fail("delete")

        result = await engine.remove_field(workspace, FieldTarget.step(3), 3)

        assert result.has_warning(WarningCode.FIELD_DELETE_FAILED)
        assert 3 in result.workspace.catalog
        assert result.workspace.workflow.get_step(3).step.field_ids == [3]
        assert workflow_repo.calls_to("save") == []

    @pytest.mark.asyncio
    async def test_step_target_missing_field_keeps_catalog(self, engine, workspace, field_repo):
        with pytest.raises(ValidationError) as exc_info:
            await engine.remove_field(workspace, FieldTarget.step(3), 1)

        assert exc_info.value.code == ErrorCode.FIELD_NOT_IN_TARGET
        assert field_repo.calls_to("delete") == []

    @pytest.mark.asyncio
    async def test_non_collecting_step_keeps_catalog(self, engine, workspace, field_repo):
        with pytest.raises(ValidationError) as exc_info:
            await engine.remove_field(workspace, FieldTarget.step(2), 1)

        assert exc_info.value.code == ErrorCode.STEP_NOT_COLLECTING
        assert field_repo.calls_to("delete") == []


class TestSetFieldRequired:
    """Tests for set_field_required."""

    @pytest.mark.asyncio
    async def test_flag_written_to_view_and_cache(self, engine, workspace, view_repo):
        result = await engine.set_field_required(workspace, VIEW_100, 2, True)

        assert view_repo.get(100).model.fields[1].required is True
        assert result.workspace.workflow.get_step(1).step.fields[1].required is True

    @pytest.mark.asyncio
    async def test_unchanged_flag_is_noop(self, engine, workspace, view_repo):
        result = await engine.set_field_required(workspace, VIEW_100, 2, False)

        assert result.effects == []

    @pytest.mark.asyncio
    async def test_field_not_in_target(self, engine, workspace):
        with pytest.raises(ValidationError):
            await engine.set_field_required(workspace, FieldTarget.step(3), 1, True)


class TestUpdateField:
    """Tests for update_field."""

    @pytest.mark.asyncio
    async def test_update_refreshes_catalog(self, engine, workspace, field_repo):
        result = await engine.update_field(workspace, 1, {"label": "Given Name", "type": "TextArea"})

        updated = result.workspace.catalog.by_id(1)
        assert updated.label == "Given Name"
        assert updated.type is FieldType.TEXT_AREA
        assert result.workspace.catalog.version == workspace.catalog.version + 1
        assert field_repo.get(1).label == "Given Name"

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, engine, workspace, field_repo):
        with pytest.raises(ValidationError) as exc_info:
            await engine.update_field(workspace, 1, {"type": "Hologram"})

        assert exc_info.value.code == ErrorCode.UNKNOWN_FIELD_TYPE
        assert field_repo.calls == []

    @pytest.mark.asyncio
    async def test_missing_field_is_a_warning(self, engine, workspace):
        result = await engine.update_field(workspace, 99, {"label": "Ghost"})

        assert result.has_warning(WarningCode.FIELD_UPDATE_FAILED)
        assert result.workspace.catalog == workspace.catalog
