"""Optimistic ordering overrides shown while a write is in flight."""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from casebuilder.domain.targets import OverlayKey, TargetKind
from casebuilder.domain.workspace import Workspace
from casebuilder.observability.metrics import MetricsCollector, get_metrics_collector

logger = logging.getLogger(__name__)


def canonical_order(workspace: Workspace, key: OverlayKey) -> Optional[List[int]]:
    """Field ids the workspace currently holds for ``key``; None if the target is gone."""
    if key.kind is TargetKind.VIEW:
        view = workspace.views.get(key.id)
        return view.field_ids if view is not None else None
    location = workspace.workflow.find_step(key.id)
    return location.step.field_ids if location is not None else None


def _unique(ids: Iterable[int]) -> List[int]:
    seen = set()
    result = []
    for field_id in ids:
        if field_id not in seen:
            seen.add(field_id)
            result.append(field_id)
    return result


@dataclass
class _Entry:
    order: List[int]
    baseline: Optional[List[int]]


class OptimisticOverlay:
    """
    Per-target candidate orderings layered over canonical data.

    An entry lives until canonical data either matches it (the write
    landed) or moves away from the baseline captured when the entry was
    applied (someone else won). Canonical always wins a conflict.
    """

    def __init__(self, metrics: Optional[MetricsCollector] = None):
        self._entries: Dict[OverlayKey, _Entry] = {}
        self._metrics = metrics or get_metrics_collector()

    def apply(
        self,
        key: OverlayKey,
        order: Sequence[int],
        baseline: Optional[Sequence[int]] = None,
    ) -> None:
        """Record the order the user expects to see for ``key``."""
        self._entries[key] = _Entry(
            order=_unique(order),
            baseline=list(baseline) if baseline is not None else None,
        )

    def get(self, key: OverlayKey) -> Optional[List[int]]:
        entry = self._entries.get(key)
        return list(entry.order) if entry else None

    def resolve(self, key: OverlayKey, canonical: Sequence[int]) -> List[int]:
        """
        Order to display for ``key``.

        Overlay ids missing from canonical are dropped unless they are new
        since the baseline (an attach still in flight); canonical ids the
        overlay does not mention are appended in canonical order.
        """
        entry = self._entries.get(key)
        if entry is None:
            return list(canonical)
        present = set(canonical)
        if entry.baseline is not None:
            present.update(set(entry.order) - set(entry.baseline))
        result = [field_id for field_id in entry.order if field_id in present]
        placed = set(result)
        result.extend(field_id for field_id in canonical if field_id not in placed)
        return _unique(result)

    def observe(self, key: OverlayKey, canonical: Optional[Sequence[int]]) -> bool:
        """Compare against canonical data. Returns True if the entry was cleared."""
        entry = self._entries.get(key)
        if entry is None:
            return False
        if canonical is None:
            self.discard(key, reason="target no longer exists")
            return True
        current = list(canonical)
        if current == entry.order:
            del self._entries[key]
            logger.debug(f"Overlay for {key} confirmed by canonical data")
            return True
        if entry.baseline is not None and current != entry.baseline:
            self.discard(key, reason="canonical data changed underneath")
            return True
        return False

    def reconcile(self, workspace: Workspace) -> None:
        """Observe every entry against ``workspace``."""
        for key in list(self._entries):
            self.observe(key, canonical_order(workspace, key))

    def view(self, workspace: Workspace, key: OverlayKey) -> Optional[List[int]]:
        """Canonical-plus-overlay order for ``key`` in ``workspace``."""
        canonical = canonical_order(workspace, key)
        if canonical is None:
            return None
        return self.resolve(key, canonical)

    def discard(self, key: OverlayKey, reason: str = "discarded") -> None:
        if self._entries.pop(key, None) is not None:
            self._metrics.record_overlay_discard()
            logger.info(f"Dropped overlay for {key}: {reason}")

    def withdraw(self, key: OverlayKey) -> None:
        """Remove an entry for an intent that was rejected before any write."""
        if self._entries.pop(key, None) is not None:
            logger.debug(f"Withdrew overlay for {key}")

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
