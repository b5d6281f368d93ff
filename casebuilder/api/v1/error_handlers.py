"""Error handlers for consistent API error responses."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from casebuilder.api.v1.exceptions import APIError, from_domain_error
from casebuilder.domain.errors import CaseBuilderError


logger = logging.getLogger(__name__)


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle custom API errors."""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "detail": exc.to_dict(),
        },
    )


async def domain_error_handler(request: Request, exc: CaseBuilderError) -> JSONResponse:
    """Handle domain errors raised by the engine or editor session."""
    api_error = from_domain_error(exc)
    logger.info(f"Rejected {request.method} {request.url.path}: {exc}")
    return await api_error_handler(request, api_error)


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle FastAPI validation errors."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "detail": {
                "error_code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"errors": errors},
            },
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all error handlers with the app."""
    app.add_exception_handler(APIError, api_error_handler)
    app.add_exception_handler(CaseBuilderError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
