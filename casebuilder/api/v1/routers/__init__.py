"""API v1 routers."""

from casebuilder.api.v1.routers.editor import router as editor_router
from casebuilder.api.v1.routers.health import router as health_router
from casebuilder.api.v1.routers.metrics import router as metrics_router

__all__ = [
    "editor_router",
    "health_router",
    "metrics_router",
]
