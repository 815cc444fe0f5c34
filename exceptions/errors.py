"""
Custom exception classes for the application.

Every fault carries a stable error code, an HTTP-style status and a details
dict so callers can render or serialize it uniformly.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "COUNTRY_NOT_FOUND")
        message: Human-readable message
        status_code: HTTP status code
        details: Additional context
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert to API response format."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
                "timestamp": self.timestamp
            }
        }


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(
        self,
        resource: str,
        identifier: str,
        code: Optional[str] = None
    ):
        super().__init__(
            code=code or f"{resource.upper()}_NOT_FOUND",
            message=f"{resource} not found",
            status_code=404,
            details={"id": identifier}
        )


class ValidationError(AppError):
    """Validation failed (422)."""

    def __init__(
        self,
        message: str,
        code: str = "VALIDATION_ERROR",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=422,
            details=details
        )


class ConflictError(AppError):
    """Conflict with existing resource (409)."""

    def __init__(
        self,
        message: str,
        code: str = "CONFLICT",
        details: Optional[dict] = None
    ):
        super().__init__(
            code=code,
            message=message,
            status_code=409,
            details=details
        )


class DuplicateError(ConflictError):
    """Duplicate resource (409)."""

    def __init__(
        self,
        resource: str,
        field: str,
        value: str
    ):
        super().__init__(
            code=f"{resource.upper()}_{field.upper()}_EXISTS",
            message=f"{resource} with this {field} already exists",
            details={field: value}
        )


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code=f"{service.upper()}_ERROR",
            message=message,
            status_code=503,
            details={"service": service, **(details or {})}
        )


class DatabaseError(AppError):
    """Database operation failed (500)."""

    def __init__(
        self,
        operation: str,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="DATABASE_ERROR",
            message=f"Database {operation} failed: {message}",
            status_code=500,
            details={"operation": operation, **(details or {})}
        )


# ===================
# COUNTRY ERRORS
# ===================

class CountryNotFoundError(NotFoundError):
    """Country not found."""

    def __init__(self, country_id: str):
        super().__init__(
            resource="Country",
            identifier=country_id,
            code="COUNTRY_NOT_FOUND"
        )


class CountryCodeExistsError(DuplicateError):
    """Country code already exists."""

    def __init__(self, code: str):
        super().__init__(
            resource="Country",
            field="code",
            value=code
        )


# ===================
# IMPORT PIPELINE ERRORS
# ===================

class ImportParseError(ValidationError):
    """Import file is unreadable or structurally empty."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None
    ):
        super().__init__(
            code="IMPORT_PARSE_ERROR",
            message=message,
            details=details
        )


class SnapshotFetchError(ExternalServiceError):
    """Existing records could not be loaded for duplicate checks."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            service="country_store",
            message=f"Failed to fetch existing countries: {message}",
            details=details
        )


class ImportAbortedError(ValidationError):
    """Commit refused before any write."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        super().__init__(
            code="IMPORT_ABORTED",
            message=message,
            details={"errors": errors or []}
        )


class ImportCommitDisabledError(ValidationError):
    """Commit requested for a run configured to validate only."""

    def __init__(self, mode: str):
        super().__init__(
            code="IMPORT_COMMIT_DISABLED",
            message="This import run is validation-only and cannot be committed",
            details={"mode": mode}
        )


class ImportCancelledError(AppError):
    """Import stopped by user request."""

    def __init__(self, committed: int, total: int):
        super().__init__(
            code="IMPORT_CANCELLED",
            message=f"Import cancelled after {committed} of {total} records",
            status_code=499,
            details={"committed": committed, "total": total}
        )


class InvalidImportStateError(ValidationError):
    """Pipeline action not allowed in the current stage."""

    def __init__(self, current_stage: str, action: str):
        super().__init__(
            code="INVALID_IMPORT_STATE",
            message=f"Cannot {action} while import is {current_stage}",
            details={"current_stage": current_stage, "action": action}
        )


# ===================
# NOTIFICATION ERRORS
# ===================

class TelegramError(AppError):
    """Telegram API error."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(
            code="TELEGRAM_ERROR",
            message=message,
            status_code=500,
            details=details
        )
