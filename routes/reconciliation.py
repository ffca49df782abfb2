"""
Reconciliation API routes.

Manual trigger, run status, connection checks and run settings.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
import structlog

from exceptions import AppError, ValidationError
from models.reconciliation import ReconciliationRunResponse
from models.run_config import RunSettingsResponse, RunSettingsUpdate
from routes.security import require_api_key
from services.reconciliation_service import get_reconciliation_service
from services.run_settings_service import get_run_settings_service
from services.scheduler_service import get_scheduler_service

logger = structlog.get_logger(__name__)

router = APIRouter()

RESPONSE_DISCREPANCY_LIMIT = 50


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

@router.post(
    "/run",
    response_model=ReconciliationRunResponse,
    dependencies=[Depends(require_api_key)]
)
def run_reconciliation():
    """
    Run an inventory comparison now.

    Blocks until the run finishes. Returns 409 if a run is already
    active and 502 if a source could not be fetched completely.
    """
    try:
        run_config = get_run_settings_service().load_run_config()
        result = get_reconciliation_service().run(run_config)
        return ReconciliationRunResponse.from_result(
            result,
            max_discrepancies=RESPONSE_DISCREPANCY_LIMIT
        )

    except Exception as e:
        return handle_error(e)


@router.get("/status")
async def get_status():
    """Whether a run is active, and the scheduler state."""
    return {
        **get_reconciliation_service().get_status(),
        "scheduler": get_scheduler_service().get_status(),
    }


@router.get("/test-connections", dependencies=[Depends(require_api_key)])
def test_connections():
    """Check credentials for Brightpearl and Infoplus."""
    try:
        return get_reconciliation_service().test_connections()

    except Exception as e:
        return handle_error(e)


@router.get("/settings", response_model=RunSettingsResponse)
def get_run_settings():
    """Current run and schedule configuration."""
    try:
        return get_run_settings_service().get_current()

    except Exception as e:
        return handle_error(e)


@router.put(
    "/settings",
    response_model=RunSettingsResponse,
    dependencies=[Depends(require_api_key)]
)
def update_run_settings(data: RunSettingsUpdate):
    """
    Update run settings.

    Only provided fields are written. Schedule changes take effect
    immediately.
    """
    try:
        updated = get_run_settings_service().update_settings(data)

        if data.cron_enabled is not None or data.cron_schedule or data.cron_timezone:
            try:
                get_scheduler_service().update_schedule(updated.schedule)
            except (ValueError, KeyError) as e:
                raise ValidationError(
                    code="INVALID_SCHEDULE",
                    message=f"Schedule rejected: {e}",
                    details={"cron": updated.schedule.cron, "timezone": updated.schedule.timezone}
                )

        return updated

    except Exception as e:
        return handle_error(e)
