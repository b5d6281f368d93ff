"""Tests for the workflow editor endpoints."""

BASE = "/api/v1/workflows/7"


class TestFieldGroups:
    """Tests for GET /workflows/{object_id}/field-groups."""

    def test_lists_stored_views(self, client):
        """Collecting steps that were never linked are not listed."""
        response = client.get(f"{BASE}/field-groups")

        assert response.status_code == 200
        data = response.json()
        assert data["version"] == 0
        assert [g["key"] for g in data["groups"]] == ["view:100"]
        assert data["groups"][0]["field_ids"] == [1, 2]

    def test_unknown_object(self, client):
        """Unknown data object returns 404."""
        response = client.get("/api/v1/workflows/99/field-groups")

        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "WORKFLOW_NOT_FOUND"

    def test_storage_outage(self, client, workflow_repo):
        """Workflow load failures other than not-found return 503."""
        workflow_repo.fail("read")

        response = client.get(f"{BASE}/field-groups")

        assert response.status_code == 503


class TestChangeStepType:
    """Tests for POST /workflows/{object_id}/steps/{step_id}/type."""

    def test_entering_collecting_creates_view(self, client, view_repo):
        """A step that starts collecting gets its own view."""
        response = client.post(
            f"{BASE}/steps/2/type",
            json={"to_type": "Collect information", "field_refs": []},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["step"]["viewId"] == 101
        assert data["version"] == 1
        assert view_repo.get(101).name == "Score"

        groups = client.get(f"{BASE}/field-groups").json()["groups"]
        assert [g["key"] for g in groups] == ["view:100", "view:101"]

    def test_leaving_collecting_reports_failed_delete(self, client, view_repo):
        """A failed view delete is a warning, not an error."""
        view_repo.fail("delete")

        response = client.post(f"{BASE}/steps/1/type", json={"to_type": "Automation"})

        assert response.status_code == 200
        data = response.json()
        assert "viewId" not in data["step"]
        assert [w["code"] for w in data["warnings"]] == ["VIEW_DELETE_FAILED"]

    def test_field_refs_pushed_to_view(self, client, view_repo):
        response = client.post(
            f"{BASE}/steps/1/type",
            json={
                "to_type": "Collect information",
                "field_refs": [{"field_id": 4, "required": True}, {"field_id": 1}],
            },
        )

        assert response.json()["field_ids"] == [4, 1]
        assert view_repo.get(100).model.fields[0].required is True

    def test_unknown_type(self, client):
        response = client.post(f"{BASE}/steps/1/type", json={"to_type": "Teleport"})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "UNKNOWN_STEP_TYPE"

    def test_unknown_step(self, client):
        response = client.post(f"{BASE}/steps/42/type", json={"to_type": "Automation"})

        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "STEP_NOT_FOUND"

    def test_missing_body_field(self, client):
        response = client.post(f"{BASE}/steps/1/type", json={})

        assert response.status_code == 422
        assert response.json()["detail"]["error_code"] == "VALIDATION_ERROR"


class TestAttachExisting:
    """Tests for POST .../targets/{kind}/{target_id}/fields."""

    def test_permutation_reorders(self, client, view_repo):
        response = client.post(f"{BASE}/targets/view/100/fields", json={"field_ids": [2, 1]})

        assert response.status_code == 200
        assert response.json()["field_ids"] == [2, 1]
        assert view_repo.get(100).field_ids == [2, 1]

        groups = client.get(f"{BASE}/field-groups").json()["groups"]
        assert groups[0]["pending"] is False

    def test_new_ids_appended(self, client):
        response = client.post(f"{BASE}/targets/step/1/fields", json={"field_ids": [3]})

        assert response.json()["field_ids"] == [1, 2, 3]

    def test_empty_selection(self, client):
        response = client.post(f"{BASE}/targets/view/100/fields", json={"field_ids": []})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "NO_FIELD_SELECTED"

    def test_non_collecting_step(self, client):
        response = client.post(f"{BASE}/targets/step/2/fields", json={"field_ids": [1]})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "STEP_NOT_COLLECTING"

    def test_unknown_view(self, client):
        response = client.post(f"{BASE}/targets/view/999/fields", json={"field_ids": [1]})

        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == "TARGET_NOT_FOUND"

    def test_unknown_target_kind(self, client):
        response = client.post(f"{BASE}/targets/widget/1/fields", json={"field_ids": [1]})

        assert response.status_code == 422


class TestAttachNew:
    """Tests for POST .../fields/new."""

    def test_created_field_attached(self, client, view_repo):
        response = client.post(
            f"{BASE}/targets/view/100/fields/new",
            json={"label": "Date of Birth", "type": "Date", "required": True},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["field_name"] == "date_of_birth"
        assert data["field_id"] == 5
        assert data["attached"] is True
        assert data["attempts"] == 1
        assert data["field_ids"] == [1, 2, 5]
        assert view_repo.get(100).model.fields[-1].required is True

    def test_unknown_field_type(self, client, field_repo):
        response = client.post(
            f"{BASE}/targets/view/100/fields/new",
            json={"label": "Shape", "type": "Hologram"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "UNKNOWN_FIELD_TYPE"
        assert field_repo.calls_to("create") == []

    def test_blank_label(self, client):
        response = client.post(f"{BASE}/targets/view/100/fields/new", json={"label": "  "})

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "EMPTY_LABEL"


class TestReorderAndRemove:
    """Tests for reordering and removing fields."""

    def test_reorder(self, client):
        response = client.post(
            f"{BASE}/targets/view/100/fields/reorder",
            json={"from_index": 1, "to_index": 0},
        )

        assert response.status_code == 200
        assert response.json()["field_ids"] == [2, 1]

    def test_failed_write_drops_optimistic_order(self, client, view_repo, metrics):
        """The displayed order snaps back when the view write fails."""
        view_repo.fail("update")

        response = client.post(
            f"{BASE}/targets/view/100/fields/reorder",
            json={"from_index": 1, "to_index": 0},
        )

        data = response.json()
        assert data["field_ids"] == [1, 2]
        assert [w["code"] for w in data["warnings"]] == ["VIEW_UPDATE_FAILED"]
        assert metrics.get_metrics().overlay_discards == 1

    def test_reorder_out_of_range(self, client):
        response = client.post(
            f"{BASE}/targets/view/100/fields/reorder",
            json={"from_index": 0, "to_index": 5},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["error_code"] == "INDEX_OUT_OF_RANGE"

    def test_remove_from_view(self, client, field_repo):
        response = client.delete(f"{BASE}/targets/view/100/fields/1")

        assert response.status_code == 200
        assert response.json()["field_ids"] == [2]
        assert field_repo.get(1) is not None

    def test_remove_from_step_deletes_field(self, client, field_repo):
        response = client.delete(f"{BASE}/targets/step/3/fields/3")

        assert response.status_code == 200
        assert response.json()["field_ids"] == []
        assert field_repo.get(3) is None
