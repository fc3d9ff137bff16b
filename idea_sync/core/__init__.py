"""Core utilities and shared components."""
from idea_sync.core.errors import (
    ErrorCode,
    APIError,
    ValidationError,
    NotFoundError,
    ConflictError,
    ExternalServiceError,
    TransportError,
    RemoteConflictError,
    CorruptSnapshotError,
)
from idea_sync.core.responses import MessageResponse

__all__ = [
    "ErrorCode",
    "APIError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ExternalServiceError",
    "TransportError",
    "RemoteConflictError",
    "CorruptSnapshotError",
    "MessageResponse",
]
