"""Addressing of field-holding targets (views and steps)."""

from dataclasses import dataclass
from enum import Enum


class TargetKind(str, Enum):
    """Kind of resource that owns an ordered field list."""
    VIEW = "view"
    STEP = "step"


@dataclass(frozen=True)
class FieldTarget:
    """
    Structured key for a field list.

    View ids and step ids come from separate id spaces, so the kind is
    part of identity: ``FieldTarget(VIEW, 3) != FieldTarget(STEP, 3)``.
    """
    kind: TargetKind
    id: int

    @classmethod
    def view(cls, view_id: int) -> "FieldTarget":
        return cls(TargetKind.VIEW, view_id)

    @classmethod
    def step(cls, step_id: int) -> "FieldTarget":
        return cls(TargetKind.STEP, step_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


# Overlay entries are keyed by the same structure as engine targets
OverlayKey = FieldTarget
