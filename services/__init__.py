"""
Business logic services.

Each service handles one stage of a reconciliation run.
"""

from services.sku_normalizer import build_index, normalize_loose, normalize_strict
from services.matcher import match_inventories
from services.report_builder import build_report, rank_discrepancies
from services.report_service import ReportService, get_report_service
from services.export_service import ExportService, get_export_service
from services.notification_service import NotificationService, get_notification_service
from services.run_settings_service import RunSettingsService, get_run_settings_service
from services.reconciliation_service import ReconciliationService, get_reconciliation_service
from services.scheduler_service import SchedulerService, get_scheduler_service

__all__ = [
    "build_index",
    "normalize_loose",
    "normalize_strict",
    "match_inventories",
    "build_report",
    "rank_discrepancies",
    "ReportService",
    "get_report_service",
    "ExportService",
    "get_export_service",
    "NotificationService",
    "get_notification_service",
    "RunSettingsService",
    "get_run_settings_service",
    "ReconciliationService",
    "get_reconciliation_service",
    "SchedulerService",
    "get_scheduler_service",
]
