"""Custom exceptions for API layer."""

from typing import Any, Dict, Optional

from casebuilder.domain.errors import (
    CaseBuilderError,
    ContainerNotFoundError,
    SessionClosedError,
    StepNotFoundError,
    TargetNotFoundError,
    ValidationError as DomainValidationError,
)


class APIError(Exception):
    """Base class for API errors."""

    def __init__(
        self,
        error_code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "error_code": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class NotFoundError(APIError):
    """Resource not found."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=404,
            details=details,
        )


class ValidationError(APIError):
    """Request rejected before anything was persisted."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=400,
            details=details,
        )


class ConflictError(APIError):
    """Operation conflicts with current state."""

    def __init__(
        self,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            error_code=error_code,
            message=message,
            status_code=409,
            details=details,
        )


class ServiceUnavailableError(APIError):
    """Storage service unavailable."""

    def __init__(
        self,
        service: str,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            error_code="SERVICE_UNAVAILABLE",
            message=message or f"{service} service is temporarily unavailable",
            status_code=503,
            details=details,
        )


_NOT_FOUND = (StepNotFoundError, TargetNotFoundError, ContainerNotFoundError)


def from_domain_error(exc: CaseBuilderError) -> APIError:
    """Translate a domain error into its HTTP counterpart."""
    if isinstance(exc, DomainValidationError):
        return ValidationError(exc.code.value, exc.message)
    if isinstance(exc, _NOT_FOUND):
        return NotFoundError(exc.code.value, exc.message)
    if isinstance(exc, SessionClosedError):
        return ConflictError(exc.code.value, exc.message)
    return APIError(exc.code.value, exc.message, status_code=409)
