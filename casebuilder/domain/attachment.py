"""Bounded polling that waits for a newly created field to become visible."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from casebuilder.domain.catalog import FieldCatalog
from casebuilder.domain.models import Field
from casebuilder.observability.metrics import MetricsCollector, get_metrics_collector
from casebuilder.persistence.errors import PersistenceError

if TYPE_CHECKING:
    from casebuilder.persistence.repositories import FieldRepository

logger = logging.getLogger(__name__)


Sleep = Callable[[float], Awaitable[None]]


@dataclass
class Resolution:
    """Outcome of resolving a field name to a catalog entry."""
    name: str
    field: Optional[Field]
    catalog: FieldCatalog
    attempts: int = 0
    refresh_failures: int = 0

    @property
    def resolved(self) -> bool:
        return self.field is not None

    @property
    def exhausted(self) -> bool:
        return self.field is None


class AttachmentResolver:
    """
    Resolve a field name against successive catalog snapshots.

    Attempt 0 checks the snapshot the caller already holds. Every later
    attempt waits ``poll_interval_s``, lists the catalog again and
    retries, up to ``max_attempts`` refreshes. Nothing is retried after
    exhaustion.
    """

    def __init__(
        self,
        fields: "FieldRepository",
        poll_interval_s: float = 0.15,
        max_attempts: int = 25,
        sleep: Sleep = asyncio.sleep,
        metrics: Optional[MetricsCollector] = None,
    ):
        self._fields = fields
        self._poll_interval_s = poll_interval_s
        self._max_attempts = max_attempts
        self._sleep = sleep
        self._metrics = metrics or get_metrics_collector()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def resolve(
        self,
        name: str,
        catalog: FieldCatalog,
        object_id: Optional[int] = None,
    ) -> Resolution:
        resolution = Resolution(name=name, field=catalog.by_name(name), catalog=catalog)
        if resolution.resolved:
            self._metrics.record_resolution(0, resolved=True)
            return resolution

        while resolution.attempts < self._max_attempts:
            await self._sleep(self._poll_interval_s)
            resolution.attempts += 1
            try:
                fields = await self._fields.list(object_id)
            except PersistenceError as e:
                resolution.refresh_failures += 1
                logger.warning(
                    f"Catalog refresh failed while resolving '{name}' "
                    f"(attempt {resolution.attempts}/{self._max_attempts}): {e}"
                )
                continue

            resolution.catalog = resolution.catalog.refreshed(fields)
            resolution.field = resolution.catalog.by_name(name)
            if resolution.resolved:
                logger.debug(f"Resolved field '{name}' after {resolution.attempts} attempt(s)")
                break

        self._metrics.record_resolution(resolution.attempts, resolved=resolution.resolved)
        if resolution.exhausted:
            logger.warning(
                f"Field '{name}' not visible in catalog after {resolution.attempts} attempts; "
                f"left unattached"
            )
        return resolution
