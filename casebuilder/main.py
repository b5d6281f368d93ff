"""
Main FastAPI application for the case builder.

Serves the workflow editor's reconciliation operations over HTTP.
"""

import logging
from typing import Optional

from fastapi import FastAPI

from casebuilder.api.v1 import api_router
from casebuilder.api.v1.error_handlers import register_error_handlers
from casebuilder.observability.logging import configure_logging
from casebuilder.settings import Settings, get_settings


logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Build the application. Logging is configured for the ``casebuilder`` logger tree."""
    settings = settings or get_settings()
    configure_logging(
        log_format=settings.log_format,
        log_level=settings.log_level,
        logger_name="casebuilder",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Workflow editor backend with view/field reconciliation",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    register_error_handlers(app)
    app.include_router(api_router)

    logger.info(
        f"Created {settings.app_name} {settings.app_version} "
        f"({'memory' if settings.use_memory_persistence else settings.persistence_base_url})"
    )
    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "casebuilder.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
