# =============================================================================
# app/exceptions.py - Custom Exception Handlers
# =============================================================================
# Centralized exception handling for the API.
# Every error response carries a machine-readable code and, where possible,
# a suggestion telling the caller how to recover.
# =============================================================================

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class CreatorOpsException(Exception):
    """
    Base exception for the Creator Ops API.

    All custom exceptions inherit from this class.
    Provides structured error responses with actionable suggestions.
    """

    def __init__(
        self,
        message: str,
        code: str = "CREATOR_OPS_ERROR",
        status_code: int = 500,
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.suggestion = suggestion
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response dict."""
        result = {
            "detail": self.message,
            "code": self.code,
        }
        if self.suggestion:
            result["suggestion"] = self.suggestion
        if self.details:
            result["details"] = self.details
        return result


class InvalidRequestError(CreatorOpsException):
    """Raised when a request is well-formed JSON but semantically invalid."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(
            message=message,
            code="INVALID_REQUEST",
            status_code=400,
            details=details,
        )


class ResourceNotFoundError(CreatorOpsException):
    """Raised when a row doesn't exist or belongs to another user."""

    def __init__(self, resource: str, resource_id: str, code: str | None = None):
        super().__init__(
            message=f"{resource} not found: {resource_id}",
            code=code or f"{resource.upper().replace(' ', '_')}_NOT_FOUND",
            status_code=404,
            suggestion=f"Check that the {resource.lower()} id is correct",
            details={"id": str(resource_id)},
        )


# =============================================================================
# Publishing Queue Exceptions
# =============================================================================

class JobNotFoundError(ResourceNotFoundError):
    """Raised when a queue job doesn't exist for the current user."""

    def __init__(self, job_id: str):
        super().__init__("Job", job_id, code="JOB_NOT_FOUND")


class InvalidJobStateError(CreatorOpsException):
    """Raised when a queue job is not in a state that allows the action."""

    def __init__(
        self,
        message: str,
        code: str,
        job_id: str,
        status: str,
        allowed: list[str],
    ):
        super().__init__(
            message=message,
            code=code,
            status_code=400,
            suggestion=f"Only jobs in status {', '.join(allowed)} accept this action",
            details={"job_id": job_id, "status": status, "allowed_statuses": allowed},
        )


class JobNotRetriableError(InvalidJobStateError):
    def __init__(self, job_id: str, status: str, allowed: list[str]):
        super().__init__(
            "Job is not in a retriable state", "JOB_NOT_RETRIABLE", job_id, status, allowed
        )


class JobNotPublishableError(InvalidJobStateError):
    def __init__(self, job_id: str, status: str, allowed: list[str]):
        super().__init__(
            "Job cannot be manually published in current state",
            "JOB_NOT_PUBLISHABLE", job_id, status, allowed,
        )


class JobNotCancellableError(InvalidJobStateError):
    def __init__(self, job_id: str, status: str, allowed: list[str]):
        super().__init__(
            "Job cannot be cancelled in current state",
            "JOB_NOT_CANCELLABLE", job_id, status, allowed,
        )


class TaskQueueUnavailableError(CreatorOpsException):
    """Raised when a background task cannot be enqueued."""

    def __init__(self, error: str):
        super().__init__(
            message="Background task queue is unavailable",
            code="TASK_QUEUE_UNAVAILABLE",
            status_code=503,
            suggestion="Try again in a moment; the job was left in its previous state",
            details={"error": error},
        )


# =============================================================================
# Cache Exceptions
# =============================================================================

class UnknownCacheScopeError(CreatorOpsException):
    """Raised when asked to invalidate a cache scope that doesn't exist."""

    def __init__(self, scope: str, valid_scopes: list[str]):
        super().__init__(
            message="Unknown scope",
            code="UNKNOWN_CACHE_SCOPE",
            status_code=400,
            suggestion=f"Use one of: {', '.join(valid_scopes)}",
            details={"scope": scope, "valid_scopes": valid_scopes},
        )


# =============================================================================
# Integration Exceptions
# =============================================================================

class IntegrationNotConnectedError(CreatorOpsException):
    """Raised when the user hasn't connected the required account."""

    def __init__(self, provider: str):
        super().__init__(
            message=f"{provider} not connected. Connect your account in Integrations.",
            code="INTEGRATION_NOT_CONNECTED",
            status_code=400,
            suggestion=f"Connect {provider} from the Integrations page",
            details={"provider": provider},
        )


class IntegrationNotConfiguredError(CreatorOpsException):
    """Raised when server-side credentials for an integration are missing."""

    def __init__(self, provider: str):
        super().__init__(
            message=f"{provider} integration is not configured",
            code="INTEGRATION_NOT_CONFIGURED",
            status_code=503,
            suggestion="Set the integration credentials in the server environment",
            details={"provider": provider},
        )


class ExternalServiceError(CreatorOpsException):
    """Raised when a third-party API call fails."""

    def __init__(
        self,
        service: str,
        message: str,
        status_code: int = 502,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            message=message,
            code=f"{service.upper().replace(' ', '_')}_ERROR",
            status_code=status_code,
            suggestion="Try again later or reconnect the integration",
            details={"service": service, **(details or {})},
        )


class WebhookSignatureError(CreatorOpsException):
    """Raised when a webhook payload fails signature verification."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Webhook signature verification failed: {error}",
            code="INVALID_SIGNATURE",
            status_code=400,
        )


# =============================================================================
# Account Exceptions
# =============================================================================

class AuthenticationFailedError(CreatorOpsException):
    """Raised when Supabase Auth rejects credentials."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(
            message=message,
            code="AUTHENTICATION_FAILED",
            status_code=401,
            suggestion="Check your credentials or reset your password",
        )


# =============================================================================
# Upload / Storage Exceptions
# =============================================================================

class FileTooLargeError(CreatorOpsException):
    """Raised when uploaded file exceeds size limit."""

    def __init__(self, size_mb: float, max_mb: int):
        super().__init__(
            message=f"File too large: {size_mb:.1f}MB (max: {max_mb}MB)",
            code="FILE_TOO_LARGE",
            status_code=413,
            suggestion=f"Upload a file smaller than {max_mb}MB",
            details={"size_mb": size_mb, "max_mb": max_mb}
        )


class StorageUploadError(CreatorOpsException):
    """Raised when file upload to storage fails."""

    def __init__(self, error: str):
        super().__init__(
            message=f"Failed to upload file to storage: {error}",
            code="STORAGE_UPLOAD_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"error": error}
        )


class StorageError(CreatorOpsException):
    """Raised when a storage operation other than upload fails."""

    def __init__(self, path: str, error: str):
        super().__init__(
            message=f"Storage operation failed: {error}",
            code="STORAGE_ERROR",
            status_code=500,
            suggestion="Try again later or contact support if the issue persists",
            details={"path": path, "error": error}
        )


# =============================================================================
# Exception Handlers
# =============================================================================

async def creator_ops_exception_handler(
    request: Request,
    exc: CreatorOpsException
) -> JSONResponse:
    """
    Convert CreatorOpsException to JSON response.

    Returns structured error with:
    - detail: Human-readable message
    - code: Machine-readable error code
    - suggestion: How to fix (if available)
    - details: Additional context
    """
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict()
    )


async def validation_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle Pydantic validation errors.

    Converts validation errors to user-friendly messages.
    """
    errors = jsonable_encoder(exc.errors()) if hasattr(exc, "errors") else str(exc)
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "code": "VALIDATION_ERROR",
            "errors": errors,
        }
    )
