"""
Standardized Error Codes and Custom Exceptions

- Machine-readable error codes for programmatic handling
- Human-readable messages for debugging
- Consistent HTTP status code mapping for the API surface
- Support for error details and parameters
"""

from enum import Enum
from typing import Optional, Any, Dict, List
from fastapi import status


class ErrorCode(str, Enum):
    """
    Machine-readable error codes.

    Categories:
    - VALIDATION_*: Invalid record payloads (400)
    - NOT_FOUND_*: Record not found errors (404)
    - CONFLICT_*: Identity conflicts (409)
    - EXTERNAL_*: Remote snapshot / collaborator failures (502/504)
    - SNAPSHOT_*: Unreadable remote snapshot (422)
    - INTERNAL_*: Internal errors (500)
    """

    # Validation Errors (400)
    VALIDATION_FAILED = "validation_failed"
    VALIDATION_MISSING_FIELD = "missing_required_field"
    VALIDATION_INVALID_VALUE = "invalid_value"
    VALIDATION_UNKNOWN_COLLECTION = "unknown_collection"

    # Not Found Errors (404)
    NOT_FOUND_RESOURCE = "resource_not_found"
    NOT_FOUND_RECORD = "record_not_found"
    NOT_FOUND_TASK = "task_not_found"
    NOT_FOUND_DELETED_TASK = "deleted_task_not_found"

    # Conflict Errors (409)
    CONFLICT_RESOURCE_EXISTS = "resource_already_exists"
    CONFLICT_DUPLICATE_UUID = "duplicate_uuid"

    # External Service Errors (502/504)
    EXTERNAL_SERVICE_ERROR = "external_service_error"
    EXTERNAL_DRIVE_FAILED = "drive_service_failed"
    EXTERNAL_SUPABASE_FAILED = "supabase_service_failed"
    EXTERNAL_REMOTE_CHANGED = "remote_snapshot_changed"
    EXTERNAL_TIMEOUT = "external_timeout"

    # Snapshot Errors (422)
    SNAPSHOT_CORRUPT = "corrupt_snapshot"

    # Internal Errors (500)
    INTERNAL_ERROR = "internal_server_error"


# HTTP Status Code Mapping
ERROR_CODE_STATUS_MAP: Dict[ErrorCode, int] = {
    # Validation (400)
    ErrorCode.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_MISSING_FIELD: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_INVALID_VALUE: status.HTTP_400_BAD_REQUEST,
    ErrorCode.VALIDATION_UNKNOWN_COLLECTION: status.HTTP_404_NOT_FOUND,

    # Not Found (404)
    ErrorCode.NOT_FOUND_RESOURCE: status.HTTP_404_NOT_FOUND,
    ErrorCode.NOT_FOUND_RECORD: status.HTTP_404_NOT_FOUND,
    ErrorCode.NOT_FOUND_TASK: status.HTTP_404_NOT_FOUND,
    ErrorCode.NOT_FOUND_DELETED_TASK: status.HTTP_404_NOT_FOUND,

    # Conflict (409)
    ErrorCode.CONFLICT_RESOURCE_EXISTS: status.HTTP_409_CONFLICT,
    ErrorCode.CONFLICT_DUPLICATE_UUID: status.HTTP_409_CONFLICT,

    # External Service (502/504)
    ErrorCode.EXTERNAL_SERVICE_ERROR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.EXTERNAL_DRIVE_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.EXTERNAL_SUPABASE_FAILED: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.EXTERNAL_REMOTE_CHANGED: status.HTTP_409_CONFLICT,
    ErrorCode.EXTERNAL_TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,

    # Snapshot (422)
    ErrorCode.SNAPSHOT_CORRUPT: status.HTTP_422_UNPROCESSABLE_ENTITY,

    # Internal (500)
    ErrorCode.INTERNAL_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class APIError(Exception):
    """
    Base exception for all application errors.

    - code: Machine-readable error code
    - message: Human-readable error message
    - param: Parameter that caused the error (optional)
    - details: Additional error details (optional)

    Example:
        raise APIError(
            code=ErrorCode.VALIDATION_MISSING_FIELD,
            message="Task is missing required fields",
            param="title"
        )
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        param: Optional[str] = None,
        details: Optional[List[str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.code = code
        self.message = message
        self.param = param
        self.details = details or []
        self.headers = headers or {}
        self.status_code = ERROR_CODE_STATUS_MAP.get(
            code, status.HTTP_500_INTERNAL_SERVER_ERROR
        )
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON response."""
        error_dict = {
            "code": self.code.value,
            "message": self.message,
        }
        if self.param:
            error_dict["param"] = self.param
        if self.details:
            error_dict["details"] = self.details
        return error_dict


# Record store errors

class ValidationError(APIError):
    """Raised when a record payload fails validation."""

    def __init__(
        self,
        message: str,
        param: Optional[str] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[List[str]] = None,
    ):
        super().__init__(code=code, message=message, param=param, details=details)


class NotFoundError(APIError):
    """Raised when a requested record is not found."""

    def __init__(
        self,
        resource: str,
        identifier: Optional[str] = None,
        code: Optional[ErrorCode] = None,
    ):
        # Auto-detect error code based on resource type
        if code is None:
            code_map = {
                "record": ErrorCode.NOT_FOUND_RECORD,
                "task": ErrorCode.NOT_FOUND_TASK,
                "deleted_task": ErrorCode.NOT_FOUND_DELETED_TASK,
            }
            code = code_map.get(resource.lower(), ErrorCode.NOT_FOUND_RESOURCE)

        label = resource.replace("_", " ").capitalize()
        message = f"{label} not found"
        if identifier:
            message = f"{label} with ID '{identifier}' not found"

        super().__init__(code=code, message=message, param=f"{resource.lower()}_id")


class ConflictError(APIError):
    """Raised when a record identity already exists."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFLICT_RESOURCE_EXISTS,
        param: Optional[str] = None,
    ):
        super().__init__(code=code, message=message, param=param)


# Sync errors

class ExternalServiceError(APIError):
    """Raised when an external service fails."""

    def __init__(
        self,
        service: str,
        message: Optional[str] = None,
        code: Optional[ErrorCode] = None,
    ):
        # Auto-detect error code based on service
        if code is None:
            code_map = {
                "drive": ErrorCode.EXTERNAL_DRIVE_FAILED,
                "supabase": ErrorCode.EXTERNAL_SUPABASE_FAILED,
            }
            code = code_map.get(service.lower(), ErrorCode.EXTERNAL_SERVICE_ERROR)

        if message is None:
            message = f"{service.capitalize()} service temporarily unavailable"

        super().__init__(code=code, message=message)


class TransportError(ExternalServiceError):
    """Raised when the remote snapshot store returns a non-2xx status or is unreachable."""

    def __init__(
        self,
        reason: str,
        status_code: Optional[int] = None,
        code: ErrorCode = ErrorCode.EXTERNAL_DRIVE_FAILED,
    ):
        self.reason = reason
        self.http_status = status_code
        message = reason if status_code is None else f"{reason} (HTTP {status_code})"
        super().__init__(service="drive", message=message, code=code)


class RemoteConflictError(TransportError):
    """Raised when the remote snapshot changed between download and upload."""

    def __init__(self, expected_version: Optional[str], actual_version: Optional[str]):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            reason=(
                f"Remote snapshot changed since download "
                f"(expected version {expected_version}, found {actual_version})"
            ),
            code=ErrorCode.EXTERNAL_REMOTE_CHANGED,
        )


class CorruptSnapshotError(APIError):
    """Raised when the remote snapshot is not valid JSON or does not match the schema."""

    def __init__(self, message: str, details: Optional[List[str]] = None):
        super().__init__(code=ErrorCode.SNAPSHOT_CORRUPT, message=message, details=details)
