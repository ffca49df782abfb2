"""
Stored report API routes.
"""

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse, StreamingResponse
import structlog

from exceptions import AppError
from models.report import StoredReport, StoredReportListResponse
from services.export_service import get_export_service, report_filename
from services.report_service import get_report_service

logger = structlog.get_logger(__name__)

router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.get("", response_model=StoredReportListResponse)
def list_reports(
    limit: int = Query(20, ge=1, le=200, description="Most recent N reports")
):
    """List stored reports, newest first."""
    try:
        return get_report_service().list_reports(limit=limit)

    except Exception as e:
        return handle_error(e)


@router.get("/{report_id}", response_model=StoredReport)
def get_report(report_id: str):
    """Get one stored report with its full discrepancy list."""
    try:
        return get_report_service().get_report(report_id)

    except Exception as e:
        return handle_error(e)


@router.get("/{report_id}/export")
def export_report(report_id: str):
    """Download a stored report as an Excel file."""
    try:
        report = get_report_service().get_report(report_id)
        output = get_export_service().generate_stored_report_excel(report)
        filename = report_filename(report.date)

        return StreamingResponse(
            output,
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'}
        )

    except Exception as e:
        return handle_error(e)
