"""
Report persistence.

One row per run in inventory_reports. The discrepancy list is stored
in full as a JSON string; delivery channels truncate, storage never does.
"""

import json
from datetime import datetime, timezone
from typing import Optional

import structlog

from config import get_supabase_client
from exceptions import DatabaseError, PersistError, ReportNotFoundError
from models.reconciliation import Discrepancy, DiscrepancyReport
from models.report import StoredReport, StoredReportListResponse, StoredReportSummary

logger = structlog.get_logger(__name__)

SUMMARY_COLUMNS = "id, date, total_discrepancies, brightpearl_total_items, infoplus_total_items, created_at"


class ReportService:
    """
    Stored report operations.

    persist() is called once per run; list/get back the reports API.
    """

    def __init__(self):
        self.db = get_supabase_client()
        self.table = "inventory_reports"

    # ===================
    # WRITE
    # ===================

    def persist(self, report: DiscrepancyReport) -> str:
        """
        Store a report.

        Args:
            report: Full ranked report

        Returns:
            New report id

        Raises:
            PersistError: Insert failed or returned no row
        """
        row = {
            "date": report.date.isoformat(),
            "total_discrepancies": report.total_discrepancies,
            "discrepancies": json.dumps(
                [d.model_dump(mode="json") for d in report.discrepancies]
            ),
            "created_at": datetime.now(timezone.utc).isoformat(),
            "brightpearl_total_items": report.source_item_counts.brightpearl,
            "infoplus_total_items": report.source_item_counts.infoplus,
        }

        try:
            response = self.db.table(self.table).insert(row).execute()
        except Exception as e:
            logger.error("report_persist_failed", error=str(e))
            raise PersistError(str(e)) from e

        if not response.data:
            logger.error("report_persist_empty_response")
            raise PersistError("Insert returned no row")

        report_id = response.data[0].get("id")
        if report_id is None:
            logger.error("report_persist_missing_id")
            raise PersistError("Insert returned a row without an id")

        report_id = str(report_id)
        logger.info(
            "report_persisted",
            report_id=report_id,
            total_discrepancies=report.total_discrepancies
        )
        return report_id

    # ===================
    # READ
    # ===================

    def list_reports(self, limit: int = 20) -> StoredReportListResponse:
        """
        Most recent reports first, without their discrepancy payloads.

        Raises:
            DatabaseError: Query failed
        """
        logger.info("listing_reports", limit=limit)

        try:
            response = (
                self.db.table(self.table)
                .select(SUMMARY_COLUMNS)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error("reports_list_failed", error=str(e))
            raise DatabaseError("select", str(e))

        reports = [StoredReportSummary(**row) for row in response.data or []]
        return StoredReportListResponse(data=reports, total=len(reports))

    def get_report(self, report_id: str) -> StoredReport:
        """
        One report with its discrepancy list decoded.

        Raises:
            ReportNotFoundError: No row with this id
            DatabaseError: Query failed or payload is corrupt
        """
        logger.debug("getting_report", report_id=report_id)

        try:
            response = (
                self.db.table(self.table)
                .select("*")
                .eq("id", report_id)
                .execute()
            )
        except Exception as e:
            logger.error("report_get_failed", report_id=report_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not response.data:
            raise ReportNotFoundError(report_id)

        row = dict(response.data[0])
        row["discrepancies"] = self._decode_discrepancies(report_id, row.get("discrepancies"))
        return StoredReport(**row)

    def _decode_discrepancies(self, report_id: str, raw) -> list[Discrepancy]:
        if raw is None:
            return []
        try:
            payload = json.loads(raw) if isinstance(raw, str) else raw
            return [Discrepancy(**d) for d in payload]
        except (ValueError, TypeError) as e:
            logger.error("report_payload_corrupt", report_id=report_id, error=str(e))
            raise DatabaseError("decode", f"Report {report_id} has an unreadable discrepancy list")


# Singleton instance
_report_service: Optional[ReportService] = None


def get_report_service() -> ReportService:
    """Get or create ReportService instance."""
    global _report_service
    if _report_service is None:
        _report_service = ReportService()
    return _report_service
