"""Domain error types for workflow and field reconciliation."""

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    """Error codes for rejected editor intents."""

    # Input validation
    EMPTY_LABEL = "EMPTY_LABEL"
    EMPTY_NAME = "EMPTY_NAME"
    NO_FIELD_SELECTED = "NO_FIELD_SELECTED"
    INDEX_OUT_OF_RANGE = "INDEX_OUT_OF_RANGE"
    UNKNOWN_STEP_TYPE = "UNKNOWN_STEP_TYPE"
    UNKNOWN_FIELD_TYPE = "UNKNOWN_FIELD_TYPE"

    # Binding rules
    STEP_NOT_COLLECTING = "STEP_NOT_COLLECTING"
    FIELD_NOT_IN_TARGET = "FIELD_NOT_IN_TARGET"

    # Lookups
    STEP_NOT_FOUND = "STEP_NOT_FOUND"
    TARGET_NOT_FOUND = "TARGET_NOT_FOUND"
    CONTAINER_NOT_FOUND = "CONTAINER_NOT_FOUND"

    # Configuration
    OBJECT_ID_UNRESOLVED = "OBJECT_ID_UNRESOLVED"

    # Editor session
    SESSION_CLOSED = "SESSION_CLOSED"


class CaseBuilderError(Exception):
    """Base class for domain errors."""

    code: ErrorCode = ErrorCode.TARGET_NOT_FOUND

    def __init__(self, message: str, code: Optional[ErrorCode] = None):
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


class ValidationError(CaseBuilderError):
    """Intent rejected before any persistence call was attempted."""

    def __init__(self, code: ErrorCode, message: str):
        super().__init__(message, code)


class InferenceError(CaseBuilderError):
    """The owning data-object id for a new View could not be determined."""

    code = ErrorCode.OBJECT_ID_UNRESOLVED


class StepNotFoundError(CaseBuilderError):
    """Step not present in the workflow tree."""

    code = ErrorCode.STEP_NOT_FOUND

    def __init__(self, step_id: int):
        self.step_id = step_id
        super().__init__(f"Step {step_id} not found")


class ContainerNotFoundError(CaseBuilderError):
    """Stage or process not present in the workflow tree."""

    code = ErrorCode.CONTAINER_NOT_FOUND


class TargetNotFoundError(CaseBuilderError):
    """Field target (view or step) could not be located."""

    code = ErrorCode.TARGET_NOT_FOUND


class SessionClosedError(CaseBuilderError):
    """Editor session was already committed or discarded."""

    code = ErrorCode.SESSION_CLOSED
