"""
Reconciliation result schemas.

Every non-ignored raw SKU from either source ends up in exactly one of
ExactMatch, Discrepancy or SourceOnly.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional, Literal, Union

from pydantic import Field

from models.base import FrozenSchema, BaseSchema
from models.inventory import InventorySource, UNKNOWN_PRODUCT


class MatchType(str, Enum):
    """Which matching phase paired two SKUs."""
    STRICT = "strict"  # case-insensitive only
    LOOSE = "loose"  # separators removed as well


class ExactMatch(FrozenSchema):
    """Matched pair with equal quantities."""

    kind: Literal["exact"] = "exact"
    sku: str = Field(..., description="Display SKU (source A spelling preferred)")
    quantity: int = Field(..., ge=0)
    match_type: MatchType
    normalized_sku: str
    brightpearl_sku: str
    infoplus_sku: str


class Discrepancy(FrozenSchema):
    """Matched pair with differing quantities."""

    kind: Literal["discrepancy"] = "discrepancy"
    sku: str = Field(..., description="Display SKU (source A spelling preferred)")
    product_name: str = UNKNOWN_PRODUCT
    brightpearl_stock: int = Field(..., ge=0)
    infoplus_stock: int = Field(..., ge=0)
    difference: int = Field(..., description="brightpearl_stock - infoplus_stock")
    percentage_diff: float = Field(..., ge=0)
    match_type: MatchType
    normalized_sku: str
    brightpearl_sku: str
    infoplus_sku: str
    brand: Optional[str] = None


class SourceOnly(FrozenSchema):
    """SKU with no counterpart in the other source."""

    kind: Literal["source_only"] = "source_only"
    sku: str
    quantity: int = Field(..., ge=0)
    source: InventorySource
    product_name: str = UNKNOWN_PRODUCT


MatchRecord = Union[ExactMatch, Discrepancy, SourceOnly]


class MatchStats(FrozenSchema):
    """Counts per matching phase."""

    exact_matches: int = 0
    strict_matches: int = 0
    loose_matches: int = 0


class SourceItemCounts(FrozenSchema):
    """Number of raw SKUs fetched per source."""

    brightpearl: int = 0
    infoplus: int = 0


class SkuCollision(FrozenSchema):
    """Two or more raw SKUs from one source sharing a normalized key."""

    source: InventorySource
    key: str
    kept_sku: str
    colliding_skus: list[str]
    key_type: MatchType


class DiscrepancyReport(FrozenSchema):
    """Ranked, auditable output of one run."""

    date: date
    total_discrepancies: int
    discrepancies: list[Discrepancy] = Field(default_factory=list)
    source_item_counts: SourceItemCounts
    match_stats: MatchStats
    ignored_skus: list[str] = Field(default_factory=list)
    collisions: list[SkuCollision] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def truncated(self, limit: int) -> "DiscrepancyReport":
        """Copy limited to the first `limit` ranked discrepancies. Totals are kept."""
        return self.model_copy(update={"discrepancies": self.discrepancies[:max(limit, 0)]})


class ReconciliationResult(FrozenSchema):
    """Everything a run produced, including what the report does not persist."""

    run_id: str
    report: DiscrepancyReport
    report_id: Optional[str] = None
    exact_matches: list[ExactMatch] = Field(default_factory=list)
    brightpearl_only: list[SourceOnly] = Field(default_factory=list)
    infoplus_only: list[SourceOnly] = Field(default_factory=list)
    notified: bool = False
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def total_matches(self) -> int:
        return len(self.exact_matches) + self.report.total_discrepancies

    @property
    def message(self) -> str:
        stats = self.report.match_stats
        return (
            f"Inventory comparison completed successfully! "
            f"{stats.strict_matches} strict + {stats.loose_matches} loose matches found. "
            f"{self.report.total_discrepancies} discrepancies need attention."
        )


# ===================
# API RESPONSES
# ===================

class ReconciliationRunResponse(BaseSchema):
    """Summary returned to whoever triggered a run."""

    success: bool = True
    run_id: str
    report_id: Optional[str] = None
    total_discrepancies: int
    discrepancies: list[Discrepancy]
    exact_matches: int
    strict_matches: int
    loose_matches: int
    brightpearl_only: int
    infoplus_only: int
    brightpearl_items: int
    infoplus_items: int
    total_matches: int
    message: str
    timestamp: datetime

    @classmethod
    def from_result(
        cls,
        result: ReconciliationResult,
        max_discrepancies: int = 50
    ) -> "ReconciliationRunResponse":
        report = result.report
        return cls(
            run_id=result.run_id,
            report_id=result.report_id,
            total_discrepancies=report.total_discrepancies,
            discrepancies=report.discrepancies[:max_discrepancies],
            exact_matches=report.match_stats.exact_matches,
            strict_matches=report.match_stats.strict_matches,
            loose_matches=report.match_stats.loose_matches,
            brightpearl_only=len(result.brightpearl_only),
            infoplus_only=len(result.infoplus_only),
            brightpearl_items=report.source_item_counts.brightpearl,
            infoplus_items=report.source_item_counts.infoplus,
            total_matches=result.total_matches,
            message=result.message,
            timestamp=result.timestamp,
        )
