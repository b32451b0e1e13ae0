"""
Workflow error taxonomy.

Every failure is scoped to the single operation that raised it. The API
layer maps each error to an HTTP status through the handlers registered
in ``main.py``; services never raise ``HTTPException`` themselves.
"""
from enum import Enum
from typing import Any, Dict, Optional


class WorkflowError(Exception):
    """Base class for accident workflow failures."""

    code = "workflow_error"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a response/log friendly dictionary."""
        return {"detail": self.message, "error": self.code, **self.details}


class InvalidToken(WorkflowError):
    """Link token is unknown, consumed or expired."""

    code = "invalid_token"
    status_code = 401

    def __init__(self, message: str = "Invalid or expired link", reason: str = "unknown"):
        super().__init__(message, {"reason": reason})
        self.reason = reason


class ValidationError(WorkflowError):
    """A required field is missing or malformed."""

    code = "validation_error"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else {})
        self.field = field


class LocationFailureReason(str, Enum):
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNSUPPORTED = "unsupported"


class LocationFailure(WorkflowError):
    """Device position could not be acquired. Never fatal to a submission."""

    code = "location_failure"
    status_code = 422

    def __init__(self, reason: LocationFailureReason, message: Optional[str] = None):
        super().__init__(message or reason.value, {"reason": reason.value})
        self.reason = reason


class NotFound(WorkflowError):
    code = "not_found"
    status_code = 404

    def __init__(self, entity: str, ref: Any):
        super().__init__(f"{entity} not found: {ref}", {"entity": entity, "ref": str(ref)})
        self.entity = entity
        self.ref = ref


class InvalidStateTransition(WorkflowError):
    """Requested status change is not allowed from the current status."""

    code = "invalid_state_transition"
    status_code = 409

    def __init__(self, current: Any, target: Any):
        current_value = getattr(current, "value", current)
        target_value = getattr(target, "value", target)
        super().__init__(
            f"Cannot move report from '{current_value}' to '{target_value}'",
            {"current": current_value, "target": target_value},
        )
        self.current = current
        self.target = target


class PreconditionFailed(WorkflowError):
    code = "precondition_failed"
    status_code = 412


class TransportFailure(WorkflowError):
    """An external collaborator (geocoding, storage, messaging) is unreachable."""

    code = "transport_failure"
    status_code = 502

    def __init__(self, collaborator: str, message: str, original_error: Optional[Exception] = None):
        super().__init__(message, {"collaborator": collaborator})
        self.collaborator = collaborator
        self.original_error = original_error
