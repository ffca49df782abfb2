"""
Stored report schemas (inventory_reports table).
"""

from pydantic import Field, field_validator
from typing import Optional
from datetime import date, datetime

from models.base import BaseSchema
from models.reconciliation import Discrepancy


class StoredReportSummary(BaseSchema):
    """Report row without the discrepancy payload."""

    id: str = Field(..., description="Report id")
    date: date
    total_discrepancies: int = Field(..., ge=0)
    brightpearl_total_items: Optional[int] = None
    infoplus_total_items: Optional[int] = None
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def id_as_text(cls, v):
        """inventory_reports.id is a BIGSERIAL; the API treats ids as opaque strings."""
        return str(v) if isinstance(v, int) and not isinstance(v, bool) else v


class StoredReport(StoredReportSummary):
    """Report row with its full ranked discrepancy list."""

    discrepancies: list[Discrepancy] = Field(default_factory=list)


class StoredReportListResponse(BaseSchema):
    """List of stored reports, newest first."""

    data: list[StoredReportSummary]
    total: int
