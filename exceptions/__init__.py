"""
Custom exceptions module.
"""

from exceptions.errors import (
    # Base exceptions
    AppError,
    NotFoundError,
    ValidationError,
    ConflictError,
    ExternalServiceError,
    DatabaseError,

    # Fetching
    FetchError,
    ParseError,

    # Reports
    PersistError,
    NotifyError,
    ReportNotFoundError,

    # Runs
    SkuCollisionError,
    ReconciliationAbortedError,
    ReconciliationInProgressError,
    ReconciliationCancelledError,
)

__all__ = [
    # Base
    "AppError",
    "NotFoundError",
    "ValidationError",
    "ConflictError",
    "ExternalServiceError",
    "DatabaseError",

    # Fetching
    "FetchError",
    "ParseError",

    # Reports
    "PersistError",
    "NotifyError",
    "ReportNotFoundError",

    # Runs
    "SkuCollisionError",
    "ReconciliationAbortedError",
    "ReconciliationInProgressError",
    "ReconciliationCancelledError",
]
