"""
Shared pytest fixtures for all tests.

Provides in-memory repositories, a seeded workspace and an engine whose
attachment polling never actually sleeps.
"""

from typing import List

import pytest

from casebuilder.domain.attachment import AttachmentResolver
from casebuilder.domain.catalog import FieldCatalog
from casebuilder.domain.engine import ReconciliationEngine
from casebuilder.domain.models import (
    Field,
    FieldReference,
    FieldType,
    LinkedView,
    Process,
    Stage,
    Step,
    StepType,
    UnlinkedFields,
    View,
    ViewModel,
    WorkflowModel,
)
from casebuilder.domain.views import ViewRegistry
from casebuilder.domain.workspace import Workspace
from casebuilder.observability.metrics import MetricsCollector, reset_metrics_collector
from casebuilder.persistence.repositories import (
    InMemoryFieldRepository,
    InMemoryViewRepository,
    InMemoryWorkflowRepository,
)
from casebuilder.settings import Settings


# =============================================================================
# SEED DATA
# =============================================================================
#
# Object 7 owns:
#   fields 1..4 (first_name, last_name, email, phone)
#   view 100 "Collect applicant" with fields [1, 2]
#   stage 1 "Intake" / process 10 "Capture":
#       step 1 "Collect applicant" (collecting, linked to view 100, cache [1, 2])
#       step 2 "Score" (Automation)
#   stage 2 "Decision" / process 20 "Assess":
#       step 3 "Notes" (collecting, unlinked, fields [3])


def _refs(*field_ids: int) -> tuple:
    return tuple(FieldReference(fid, order=i + 1) for i, fid in enumerate(field_ids))


@pytest.fixture
def object_id() -> int:
    return 7


@pytest.fixture
def catalog_fields(object_id) -> List[Field]:
    return [
        Field(id=1, name="first_name", label="First Name", type=FieldType.TEXT, object_id=object_id),
        Field(id=2, name="last_name", label="Last Name", type=FieldType.TEXT, object_id=object_id),
        Field(id=3, name="email", label="Email", type=FieldType.EMAIL, object_id=object_id),
        Field(id=4, name="phone", label="Phone", type=FieldType.PHONE, object_id=object_id),
    ]


@pytest.fixture
def applicant_view(object_id) -> View:
    return View(id=100, name="Collect applicant", object_id=object_id, model=ViewModel(fields=_refs(1, 2)))


@pytest.fixture
def workflow() -> WorkflowModel:
    return WorkflowModel(
        name="Loan Application",
        description="Consumer loan intake",
        stages=[
            Stage(id=1, name="Intake", processes=[
                Process(id=10, name="Capture", steps=[
                    Step(
                        id=1,
                        name="Collect applicant",
                        type=StepType.COLLECT_INFORMATION,
                        binding=LinkedView(view_id=100, fields=_refs(1, 2)),
                    ),
                    Step(id=2, name="Score", type=StepType.AUTOMATION),
                ]),
            ]),
            Stage(id=2, name="Decision", processes=[
                Process(id=20, name="Assess", steps=[
                    Step(
                        id=3,
                        name="Notes",
                        type=StepType.COLLECT_INFORMATION,
                        binding=UnlinkedFields(fields=_refs(3)),
                    ),
                ]),
            ]),
        ],
    )


@pytest.fixture
def workspace(workflow, applicant_view, catalog_fields, object_id) -> Workspace:
    return Workspace(
        workflow=workflow,
        views=ViewRegistry([applicant_view]),
        catalog=FieldCatalog.of(catalog_fields),
        object_id=object_id,
    )


# =============================================================================
# REPOSITORY FIXTURES
# =============================================================================

@pytest.fixture
def view_repo(applicant_view) -> InMemoryViewRepository:
    return InMemoryViewRepository([applicant_view])


@pytest.fixture
def field_repo(catalog_fields) -> InMemoryFieldRepository:
    return InMemoryFieldRepository(list(catalog_fields))


@pytest.fixture
def workflow_repo(workflow, object_id) -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository({object_id: workflow.clone()})


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        attachment_poll_interval_ms=0,
        attachment_max_attempts=25,
        use_memory_persistence=True,
        log_format="text",
    )


@pytest.fixture
def metrics() -> MetricsCollector:
    reset_metrics_collector()
    return MetricsCollector()


class RecordingSleep:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def resolver(field_repo, settings, sleep, metrics) -> AttachmentResolver:
    return AttachmentResolver(
        field_repo,
        poll_interval_s=settings.attachment_poll_interval_s,
        max_attempts=settings.attachment_max_attempts,
        sleep=sleep,
        metrics=metrics,
    )


@pytest.fixture
def engine(view_repo, field_repo, workflow_repo, resolver, settings, metrics) -> ReconciliationEngine:
    return ReconciliationEngine(
        view_repo,
        field_repo,
        workflow_repo,
        resolver=resolver,
        settings=settings,
        metrics=metrics,
    )
