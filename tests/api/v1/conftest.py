"""Test fixtures for API tests."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from casebuilder.api.v1 import api_router
from casebuilder.api.v1.dependencies import (
    clear_caches,
    get_app_settings,
    get_editor_service,
    get_metrics,
)
from casebuilder.api.v1.error_handlers import register_error_handlers
from casebuilder.api.v1.services.editor_service import EditorService


@pytest.fixture
def editor_service(view_repo, field_repo, workflow_repo, settings, metrics) -> EditorService:
    """Editor service over the seeded in-memory repositories."""
    return EditorService(view_repo, field_repo, workflow_repo, settings=settings, metrics=metrics)


@pytest.fixture
def app(editor_service: EditorService, settings, metrics) -> FastAPI:
    """Create test FastAPI application."""
    clear_caches()

    test_app = FastAPI(title="Test API")
    register_error_handlers(test_app)
    test_app.include_router(api_router)

    # Override dependencies
    test_app.dependency_overrides[get_editor_service] = lambda: editor_service
    test_app.dependency_overrides[get_app_settings] = lambda: settings
    test_app.dependency_overrides[get_metrics] = lambda: metrics

    yield test_app

    # Cleanup
    test_app.dependency_overrides.clear()
    clear_caches()


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create test client."""
    return TestClient(app)
