"""API v1 services."""

from casebuilder.api.v1.services.editor_service import DisplayedGroup, EditorService

__all__ = ["DisplayedGroup", "EditorService"]
