"""Health check endpoint."""

from fastapi import APIRouter, Depends, status

from casebuilder.api.v1.dependencies import get_app_settings
from casebuilder.api.v1.schemas import HealthResponse
from casebuilder.settings import Settings


router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse, status_code=status.HTTP_200_OK)
async def liveness_check(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    """Liveness only; storage is not contacted."""
    return HealthResponse(status="healthy", version=settings.app_version)
