"""Persistence collaborators for views, fields and workflows."""

from casebuilder.persistence.errors import NotFoundError, PersistenceError
from casebuilder.persistence.repositories import (
    CreatedField,
    FieldRepository,
    InMemoryFieldRepository,
    InMemoryViewRepository,
    InMemoryWorkflowRepository,
    ViewRepository,
    WorkflowRepository,
)
from casebuilder.persistence.http_repositories import (
    DatabaseApiClient,
    HttpFieldRepository,
    HttpViewRepository,
    HttpWorkflowRepository,
)

__all__ = [
    # Errors
    "PersistenceError",
    "NotFoundError",
    # Protocols
    "ViewRepository",
    "FieldRepository",
    "WorkflowRepository",
    "CreatedField",
    # In-memory
    "InMemoryViewRepository",
    "InMemoryFieldRepository",
    "InMemoryWorkflowRepository",
    # HTTP
    "DatabaseApiClient",
    "HttpViewRepository",
    "HttpFieldRepository",
    "HttpWorkflowRepository",
]
