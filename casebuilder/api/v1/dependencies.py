"""FastAPI dependency injection for API endpoints."""

from functools import lru_cache

from casebuilder.api.v1.services.editor_service import EditorService
from casebuilder.observability.metrics import MetricsCollector, get_metrics_collector
from casebuilder.persistence import (
    DatabaseApiClient,
    HttpFieldRepository,
    HttpViewRepository,
    HttpWorkflowRepository,
    InMemoryFieldRepository,
    InMemoryViewRepository,
    InMemoryWorkflowRepository,
)
from casebuilder.settings import Settings, get_settings


def get_app_settings() -> Settings:
    """Get application settings (cached)."""
    return get_settings()


def get_metrics() -> MetricsCollector:
    return get_metrics_collector()


@lru_cache
def get_editor_service() -> EditorService:
    """Get the editor service wired to the configured storage."""
    settings = get_settings()
    if settings.use_memory_persistence:
        return EditorService(
            InMemoryViewRepository(),
            InMemoryFieldRepository(),
            InMemoryWorkflowRepository(),
            settings=settings,
        )
    client = DatabaseApiClient(
        settings.persistence_base_url,
        timeout=settings.persistence_timeout_s,
    )
    return EditorService(
        HttpViewRepository(client),
        HttpFieldRepository(client),
        HttpWorkflowRepository(client),
        settings=settings,
    )


def clear_caches() -> None:
    """Clear cached dependencies (for testing)."""
    get_settings.cache_clear()
    get_editor_service.cache_clear()
