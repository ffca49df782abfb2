"""
Pydantic models for validation and serialization.
"""

from models.base import BaseSchema, FrozenSchema
from models.inventory import (
    InventorySource,
    InventoryItem,
    InventorySnapshot,
    UNKNOWN_PRODUCT,
)
from models.reconciliation import (
    MatchType,
    ExactMatch,
    Discrepancy,
    SourceOnly,
    MatchRecord,
    MatchStats,
    SourceItemCounts,
    SkuCollision,
    DiscrepancyReport,
    ReconciliationResult,
    ReconciliationRunResponse,
)
from models.run_config import (
    CollisionPolicy,
    NotificationConfig,
    FetchConfig,
    RunConfig,
    ScheduleConfig,
    RunSettingsUpdate,
    RunSettingsResponse,
)
from models.report import (
    StoredReportSummary,
    StoredReport,
    StoredReportListResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",

    # Inventory
    "InventorySource",
    "InventoryItem",
    "InventorySnapshot",
    "UNKNOWN_PRODUCT",

    # Reconciliation
    "MatchType",
    "ExactMatch",
    "Discrepancy",
    "SourceOnly",
    "MatchRecord",
    "MatchStats",
    "SourceItemCounts",
    "SkuCollision",
    "DiscrepancyReport",
    "ReconciliationResult",
    "ReconciliationRunResponse",

    # Run configuration
    "CollisionPolicy",
    "NotificationConfig",
    "FetchConfig",
    "RunConfig",
    "ScheduleConfig",
    "RunSettingsUpdate",
    "RunSettingsResponse",

    # Stored reports
    "StoredReportSummary",
    "StoredReport",
    "StoredReportListResponse",
]
