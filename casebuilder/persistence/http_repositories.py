"""Repositories backed by the generic ``/api/database`` HTTP endpoint."""

import logging
from typing import Any, Dict, List, Optional

import httpx

from casebuilder.domain.errors import CaseBuilderError
from casebuilder.domain.models import Field, FieldDraft, View, ViewModel, WorkflowModel
from casebuilder.persistence.errors import NotFoundError, PersistenceError
from casebuilder.persistence.repositories import CreatedField


logger = logging.getLogger(__name__)


class DatabaseApiClient:
    """
    Thin client for the table-addressed storage API.

    Records are addressed as ``/api/database?table=<table>&id=<id>``.
    Responses wrap their payload as ``{"data": ...}``.
    """

    VIEWS_TABLE = "Views"
    FIELDS_TABLE = "Fields"
    OBJECTS_TABLE = "Objects"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize client.

        Args:
            base_url: Storage service root, e.g. http://localhost:3000
            timeout: Request timeout in seconds
            transport: Optional transport override (tests use MockTransport)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self._base_url}/api/database"

    async def request(
        self,
        method: str,
        table: str,
        record_id: Optional[int] = None,
        params: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Issue one call and return the unwrapped ``data`` payload."""
        query: Dict[str, Any] = {"table": table}
        if record_id is not None:
            query["id"] = record_id
        if params:
            query.update(params)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.request(method, self.endpoint, params=query, json=body)
        except httpx.TimeoutException as e:
            raise PersistenceError(f"{method} {table} timed out: {e}", resource=table, operation=method)
        except httpx.RequestError as e:
            raise PersistenceError(f"{method} {table} failed: {e}", resource=table, operation=method)

        if response.status_code == 404:
            raise NotFoundError(
                f"{table} record {record_id} not found",
                resource=table,
                operation=method,
                status_code=404,
            )

        if response.status_code >= 400:
            try:
                error_body = response.json() if response.content else {}
            except ValueError:
                error_body = {}
            error_msg = error_body.get("error", response.text) if isinstance(error_body, dict) else response.text
            raise PersistenceError(
                f"{method} {table} returned {response.status_code}: {error_msg}",
                resource=table,
                operation=method,
                status_code=response.status_code,
            )

        if not response.content:
            return None
        try:
            payload = response.json()
        except ValueError as e:
            raise PersistenceError(f"{method} {table} returned invalid JSON: {e}", resource=table, operation=method)
        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload


def _decode(decoder, raw: Any, what: str):
    try:
        return decoder(raw)
    except (KeyError, TypeError, ValueError, CaseBuilderError) as e:
        raise PersistenceError(f"Malformed {what} record: {e}")


class HttpViewRepository:
    """View storage over the database API."""

    def __init__(self, client: DatabaseApiClient):
        self._client = client

    async def create(self, name: str, object_id: int, model: ViewModel) -> int:
        data = await self._client.request(
            "POST",
            DatabaseApiClient.VIEWS_TABLE,
            body={
                "table": DatabaseApiClient.VIEWS_TABLE,
                "data": {"name": name, "objectid": object_id, "model": model.to_dict()},
            },
        )
        if not isinstance(data, dict) or "id" not in data:
            raise PersistenceError("View create response carried no id", resource="view", operation="create")
        view_id = int(data["id"])
        logger.info(f"Created view {view_id} '{name}' for object {object_id}")
        return view_id

    async def read(self, view_id: int) -> View:
        data = await self._client.request("GET", DatabaseApiClient.VIEWS_TABLE, record_id=view_id)
        if not data:
            raise NotFoundError(f"View {view_id} not found", resource="view", operation="read")
        return _decode(View.from_dict, data, "view")

    async def update(self, view: View) -> None:
        await self._client.request(
            "PUT",
            DatabaseApiClient.VIEWS_TABLE,
            record_id=view.id,
            body={"name": view.name, "objectid": view.object_id, "model": view.model.to_dict()},
        )

    async def delete(self, view_id: int) -> None:
        await self._client.request("DELETE", DatabaseApiClient.VIEWS_TABLE, record_id=view_id)
        logger.info(f"Deleted view {view_id}")

    async def list(self, object_id: int) -> List[View]:
        data = await self._client.request(
            "GET", DatabaseApiClient.VIEWS_TABLE, params={"objectid": object_id}
        )
        return [_decode(View.from_dict, item, "view") for item in data or []]


class HttpFieldRepository:
    """Field catalog over the database API."""

    def __init__(self, client: DatabaseApiClient):
        self._client = client

    async def create(self, draft: FieldDraft, object_id: Optional[int]) -> CreatedField:
        data = await self._client.request(
            "POST",
            DatabaseApiClient.FIELDS_TABLE,
            body={"table": DatabaseApiClient.FIELDS_TABLE, "data": draft.to_record(object_id)},
        )
        if not isinstance(data, dict):
            data = {}
        name = data.get("name") or draft.proposed_name
        field_id = data.get("id")
        return CreatedField(name=name, id=int(field_id) if field_id is not None else None)

    async def list(self, object_id: Optional[int] = None) -> List[Field]:
        params = {"objectid": object_id} if object_id is not None else None
        data = await self._client.request("GET", DatabaseApiClient.FIELDS_TABLE, params=params)
        return [_decode(Field.from_dict, item, "field") for item in data or []]

    async def update(self, field_id: int, changes: Dict[str, Any]) -> None:
        await self._client.request(
            "PUT", DatabaseApiClient.FIELDS_TABLE, record_id=field_id, body=changes
        )

    async def delete(self, field_id: int) -> None:
        await self._client.request("DELETE", DatabaseApiClient.FIELDS_TABLE, record_id=field_id)


class HttpWorkflowRepository:
    """Stage tree stored in the ``model`` column of the owning object."""

    def __init__(self, client: DatabaseApiClient):
        self._client = client

    async def read(self, object_id: int) -> WorkflowModel:
        data = await self._client.request("GET", DatabaseApiClient.OBJECTS_TABLE, record_id=object_id)
        if not data:
            raise NotFoundError(f"Object {object_id} not found", resource="workflow", operation="read")
        model = _decode(WorkflowModel.from_dict, data.get("model") or {}, "workflow")
        model.name = data.get("name", model.name)
        model.description = data.get("description") or model.description
        return model

    async def save(self, object_id: int, workflow: WorkflowModel) -> None:
        await self._client.request(
            "PUT",
            DatabaseApiClient.OBJECTS_TABLE,
            record_id=object_id,
            body={
                "name": workflow.name,
                "description": workflow.description,
                "model": {"stages": [s.to_dict() for s in workflow.stages]},
            },
        )
