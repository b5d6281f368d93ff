"""API v1 module."""

from fastapi import APIRouter

from casebuilder.api.v1.routers import (
    editor_router,
    health_router,
    metrics_router,
)


# Create main v1 router
api_router = APIRouter(prefix="/api/v1")

# Include sub-routers
api_router.include_router(editor_router)
api_router.include_router(health_router)
api_router.include_router(metrics_router)


__all__ = ["api_router"]
