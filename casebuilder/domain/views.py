"""Local registry of persisted views."""

from typing import Dict, Iterable, Iterator, List, Optional

from casebuilder.domain.models import View


class ViewRegistry:
    """
    Immutable view-id -> View mapping.

    Every mutation returns a new registry so workspace snapshots can be
    shared between concurrent operations.
    """

    def __init__(self, views: Iterable[View] = ()):
        self._views: Dict[int, View] = {v.id: v for v in views}

    def get(self, view_id: Optional[int]) -> Optional[View]:
        if view_id is None:
            return None
        return self._views.get(view_id)

    def first(self) -> Optional[View]:
        return next(iter(self._views.values()), None)

    def with_view(self, view: View) -> "ViewRegistry":
        views = dict(self._views)
        views[view.id] = view
        return ViewRegistry(views.values())

    def without(self, view_id: int) -> "ViewRegistry":
        return ViewRegistry(v for v in self._views.values() if v.id != view_id)

    def sorted_by_name(self) -> List[View]:
        return sorted(self._views.values(), key=lambda v: v.name.lower())

    def __contains__(self, view_id: object) -> bool:
        return view_id in self._views

    def __iter__(self) -> Iterator[View]:
        return iter(list(self._views.values()))

    def __len__(self) -> int:
        return len(self._views)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ViewRegistry):
            return NotImplemented
        return self._views == other._views

    def __repr__(self) -> str:
        return f"ViewRegistry({sorted(self._views)})"
