"""Errors raised by persistence collaborators."""

from typing import Optional


class PersistenceError(Exception):
    """A storage call failed (transport, status or payload problem)."""

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.resource = resource
        self.operation = operation
        self.status_code = status_code


class NotFoundError(PersistenceError):
    """Requested record does not exist in storage."""
    pass
