"""
Core module exports
"""
from app.core.config import settings
from app.core.security import (
    create_access_token,
    decode_access_token,
    Operator,
    require_role,
    require_operator,
)
from app.core.logging import logger, get_logger
from app.core.errors import (
    WorkflowError,
    InvalidToken,
    ValidationError,
    LocationFailure,
    LocationFailureReason,
    NotFound,
    InvalidStateTransition,
    PreconditionFailed,
    TransportFailure,
)

__all__ = [
    "settings",
    "create_access_token",
    "decode_access_token",
    "Operator",
    "require_role",
    "require_operator",
    "logger",
    "get_logger",
    "WorkflowError",
    "InvalidToken",
    "ValidationError",
    "LocationFailure",
    "LocationFailureReason",
    "NotFound",
    "InvalidStateTransition",
    "PreconditionFailed",
    "TransportFailure",
]
