"""
Custom exception classes for the application.

Fatal run errors (FetchError, ParseError, SkuCollisionError) abort a
reconciliation before anything is compared. PersistError and NotifyError
are logged by the orchestrator and never fail a run.
"""

from typing import Optional, Any
from datetime import datetime, timezone


class AppError(Exception):
    """
    Base exception for all application errors.

    All custom exceptions inherit from this.

    Attributes:
        code: Error code (e.g., "REPORT_NOT_FOUND")
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
    """Conflict with existing resource or running operation (409)."""

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


class ExternalServiceError(AppError):
    """External service failure (503)."""

    def __init__(
        self,
        service: str,
        message: str,
        details: Optional[dict] = None,
        code: Optional[str] = None,
        status_code: int = 503
    ):
        super().__init__(
            code=code or f"{service.upper()}_ERROR",
            message=message,
            status_code=status_code,
            details={"service": service, **(details or {})}
        )
        self.service = service


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
# FETCH ERRORS
# ===================

class FetchError(ExternalServiceError):
    """
    Inventory source could not be fetched completely.

    reason is one of: timeout, network, auth, client, server.
    Only timeout, network and server failures are retried.
    """

    RETRYABLE_REASONS = frozenset({"timeout", "network", "server"})

    def __init__(
        self,
        source: str,
        reason: str,
        message: str,
        upstream_status: Optional[int] = None
    ):
        super().__init__(
            service=source,
            message=message,
            code="FETCH_ERROR",
            details={"reason": reason, "upstream_status": upstream_status}
        )
        self.source = source
        self.reason = reason
        self.upstream_status = upstream_status

    @property
    def retryable(self) -> bool:
        return self.reason in self.RETRYABLE_REASONS


class ParseError(ExternalServiceError):
    """Source returned a payload we cannot interpret (502)."""

    def __init__(self, source: str, message: str, details: Optional[dict] = None):
        super().__init__(
            service=source,
            message=message,
            code="PARSE_ERROR",
            status_code=502,
            details=details
        )
        self.source = source


# ===================
# REPORT ERRORS
# ===================

class PersistError(DatabaseError):
    """Report could not be stored. Non-fatal for a run."""

    def __init__(self, message: str):
        super().__init__("insert", message, details={"table": "inventory_reports"})
        self.code = "REPORT_PERSIST_ERROR"


class NotifyError(ExternalServiceError):
    """Report notification could not be delivered. Non-fatal for a run."""

    def __init__(self, channel: str, message: str):
        super().__init__(
            service=channel,
            message=message,
            code="NOTIFY_ERROR"
        )
        self.channel = channel


class ReportNotFoundError(NotFoundError):
    """Stored report not found."""

    def __init__(self, report_id: str):
        super().__init__(
            resource="Report",
            identifier=report_id,
            code="REPORT_NOT_FOUND"
        )


# ===================
# RUN ERRORS
# ===================

class SkuCollisionError(ValidationError):
    """Two raw SKUs in one source share a normalized key under the reject policy."""

    def __init__(self, source: str, key: str, skus: list[str]):
        super().__init__(
            code="SKU_COLLISION",
            message=f"SKU collision in {source} on '{key}'",
            details={"source": source, "key": key, "skus": skus}
        )


class ReconciliationAbortedError(AppError):
    """A fatal error stopped the run before a report was produced (502)."""

    def __init__(self, cause: Exception):
        source = getattr(cause, "source", None)
        super().__init__(
            code="RECONCILIATION_ABORTED",
            message=f"Inventory comparison failed: {cause}",
            status_code=502,
            details={
                "source": source,
                "cause": type(cause).__name__,
                "cause_code": getattr(cause, "code", None),
            }
        )
        self.cause = cause


class ReconciliationInProgressError(ConflictError):
    """Another run currently holds the run lock."""

    def __init__(self, active_run_id: Optional[str] = None):
        super().__init__(
            code="RECONCILIATION_IN_PROGRESS",
            message="An inventory comparison is already running",
            details={"active_run_id": active_run_id}
        )


class ReconciliationCancelledError(AppError):
    """Run was cancelled through its cancellation token."""

    def __init__(self, stage: str):
        super().__init__(
            code="RECONCILIATION_CANCELLED",
            message=f"Inventory comparison cancelled during {stage}",
            status_code=499,
            details={"stage": stage}
        )
        self.stage = stage
