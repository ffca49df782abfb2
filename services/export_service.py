"""
Export service — Generate inventory comparison Excel files.

Used as the email attachment and for downloading stored reports.
Sheets: Report Summary, Discrepancies, and Statistics (only when there
is at least one discrepancy).
"""

from datetime import date, datetime
from io import BytesIO
from typing import Optional

from openpyxl import Workbook
from openpyxl.styles import Font, Border, Side, PatternFill
import structlog

from models.reconciliation import Discrepancy, DiscrepancyReport
from models.report import StoredReport

logger = structlog.get_logger(__name__)

DISCREPANCY_HEADERS = [
    "SKU",
    "Product Name",
    "Brightpearl Stock",
    "Infoplus Stock",
    "Difference",
    "Percentage Difference",
    "Brand",
    "Match Type",
]

DISCREPANCY_WIDTHS = {"A": 20, "B": 40, "C": 15, "D": 15, "E": 12, "F": 18, "G": 15, "H": 12}

UNKNOWN_BRAND = "Unknown"
NO_DISCREPANCIES_NOTE = "No discrepancies found - all inventory matches!"

# Difference font colors
POSITIVE_COLOR = "FF006400"
NEGATIVE_COLOR = "FFDC143C"


def report_filename(report_date: date) -> str:
    """Attachment / download filename for a report date."""
    return f"inventory-report-{report_date.isoformat()}.xlsx"


def discrepancy_statistics(discrepancies: list[Discrepancy]) -> dict:
    """
    Totals shown on the Statistics sheet.

    Positive means Brightpearl holds more than Infoplus.
    """
    if not discrepancies:
        return {
            "total": 0,
            "positive": 0,
            "negative": 0,
            "total_abs_difference": 0,
            "average_abs_difference": 0.0,
            "largest_abs_difference": 0,
        }

    abs_diffs = [abs(d.difference) for d in discrepancies]
    return {
        "total": len(discrepancies),
        "positive": sum(1 for d in discrepancies if d.difference > 0),
        "negative": sum(1 for d in discrepancies if d.difference < 0),
        "total_abs_difference": sum(abs_diffs),
        "average_abs_difference": round(sum(abs_diffs) / len(abs_diffs), 2),
        "largest_abs_difference": max(abs_diffs),
    }


class ExportService:
    """Service for generating inventory report Excel files."""

    def generate_report_excel(self, report: DiscrepancyReport) -> BytesIO:
        """
        Generate Excel file for a freshly built report.

        Args:
            report: Report to export (may already be truncated)

        Returns:
            BytesIO containing the Excel file
        """
        return self._build_workbook(
            report_date=report.date,
            total_discrepancies=report.total_discrepancies,
            discrepancies=report.discrepancies,
            brightpearl_items=report.source_item_counts.brightpearl,
            infoplus_items=report.source_item_counts.infoplus,
            generated_at=report.generated_at,
        )

    def generate_stored_report_excel(self, report: StoredReport) -> BytesIO:
        """
        Generate Excel file for a report read back from storage.

        Args:
            report: Stored report with its discrepancy list

        Returns:
            BytesIO containing the Excel file
        """
        return self._build_workbook(
            report_date=report.date,
            total_discrepancies=report.total_discrepancies,
            discrepancies=report.discrepancies,
            brightpearl_items=report.brightpearl_total_items,
            infoplus_items=report.infoplus_total_items,
            generated_at=report.created_at,
        )

    def _build_workbook(
        self,
        report_date: date,
        total_discrepancies: int,
        discrepancies: list[Discrepancy],
        brightpearl_items: Optional[int],
        infoplus_items: Optional[int],
        generated_at: datetime,
    ) -> BytesIO:
        logger.info(
            "generating_report_excel",
            report_date=str(report_date),
            total_discrepancies=total_discrepancies,
            rows=len(discrepancies),
        )

        wb = Workbook()

        # Styles
        bold_font = Font(bold=True)
        title_font = Font(bold=True, size=16)
        thin_side = Side(style="thin", color="000000")
        cell_border = Border(top=thin_side, left=thin_side, bottom=thin_side, right=thin_side)
        title_fill = PatternFill(start_color="E6F3FF", end_color="E6F3FF", fill_type="solid")
        header_fill = PatternFill(start_color="D9EDF7", end_color="D9EDF7", fill_type="solid")
        stripe_fill = PatternFill(start_color="F8F9FA", end_color="F8F9FA", fill_type="solid")

        # ===== SUMMARY SHEET =====
        ws_summary = wb.active
        ws_summary.title = "Report Summary"
        ws_summary.column_dimensions["A"].width = 25
        ws_summary.column_dimensions["B"].width = 20

        ws_summary["A1"] = "Texon Inventory Comparison Report"
        ws_summary["A1"].font = title_font
        ws_summary["A1"].fill = title_fill

        summary_rows = [
            ("Report Date:", report_date.isoformat()),
            ("Generated:", generated_at.strftime("%Y-%m-%d %H:%M")),
            ("Total Discrepancies:", total_discrepancies),
            ("Brightpearl Items:", brightpearl_items if brightpearl_items is not None else "N/A"),
            ("Infoplus Items:", infoplus_items if infoplus_items is not None else "N/A"),
        ]
        for row, (label, value) in enumerate(summary_rows, start=3):
            ws_summary[f"A{row}"] = label
            ws_summary[f"A{row}"].font = bold_font
            ws_summary[f"B{row}"] = value

        # ===== DISCREPANCIES SHEET =====
        ws_disc = wb.create_sheet("Discrepancies")
        for column, width in DISCREPANCY_WIDTHS.items():
            ws_disc.column_dimensions[column].width = width

        ws_disc.append(DISCREPANCY_HEADERS)
        for cell in ws_disc[1]:
            cell.font = bold_font
            cell.fill = header_fill
            cell.border = cell_border

        for index, item in enumerate(discrepancies):
            ws_disc.append([
                item.sku,
                item.product_name,
                item.brightpearl_stock,
                item.infoplus_stock,
                item.difference,
                f"{item.percentage_diff}%",
                item.brand or UNKNOWN_BRAND,
                item.match_type.value,
            ])
            row = ws_disc.max_row

            diff_cell = ws_disc.cell(row=row, column=5)
            if item.difference > 0:
                diff_cell.font = Font(color=POSITIVE_COLOR)
            elif item.difference < 0:
                diff_cell.font = Font(color=NEGATIVE_COLOR)

            for cell in ws_disc[row]:
                cell.border = cell_border
                if index % 2 == 0:
                    cell.fill = stripe_fill

        if not discrepancies:
            note_row = ws_disc.max_row + 2
            ws_disc[f"A{note_row}"] = NO_DISCREPANCIES_NOTE
            ws_disc[f"A{note_row}"].font = Font(bold=True, color=POSITIVE_COLOR)

        # ===== STATISTICS SHEET =====
        if discrepancies:
            stats = discrepancy_statistics(discrepancies)
            ws_stats = wb.create_sheet("Statistics")
            ws_stats.column_dimensions["A"].width = 50
            ws_stats.column_dimensions["B"].width = 15

            ws_stats["A1"] = "Inventory Discrepancy Statistics"
            ws_stats["A1"].font = Font(bold=True, size=14)

            stats_rows = [
                ("Total Discrepancies:", stats["total"]),
                ("Positive Discrepancies (Brightpearl > Infoplus):", stats["positive"]),
                ("Negative Discrepancies (Infoplus > Brightpearl):", stats["negative"]),
                ("Total Absolute Difference:", stats["total_abs_difference"]),
                ("Average Absolute Difference:", stats["average_abs_difference"]),
                ("Largest Absolute Difference:", stats["largest_abs_difference"]),
            ]
            for row, (label, value) in enumerate(stats_rows, start=3):
                ws_stats[f"A{row}"] = label
                ws_stats[f"A{row}"].font = bold_font
                ws_stats[f"B{row}"] = value

        logger.info(
            "report_excel_generated",
            report_date=str(report_date),
            sheets=wb.sheetnames,
        )

        # Save to BytesIO
        output = BytesIO()
        wb.save(output)
        output.seek(0)

        return output


# Singleton instance
_export_service: Optional[ExportService] = None


def get_export_service() -> ExportService:
    """Get or create ExportService instance."""
    global _export_service
    if _export_service is None:
        _export_service = ExportService()
    return _export_service
