"""
Tests for the reconciliation and reports API routes.
"""

from datetime import date, datetime, timezone
from io import BytesIO
from unittest.mock import MagicMock, patch

import pytest
from openpyxl import load_workbook

from exceptions import (
    FetchError,
    ReconciliationAbortedError,
    ReconciliationInProgressError,
    ReportNotFoundError,
)
from models.reconciliation import ReconciliationResult
from models.report import StoredReport, StoredReportListResponse, StoredReportSummary
from models.run_config import RunConfig, RunSettingsResponse, ScheduleConfig
from tests.factories import DiscrepancyFactory, ReportFactory


def stored_report(**overrides) -> StoredReport:
    values = {
        "id": "r-1",
        "date": date(2025, 6, 1),
        "total_discrepancies": 1,
        "brightpearl_total_items": 100,
        "infoplus_total_items": 95,
        "created_at": datetime(2025, 6, 1, 19, 0, tzinfo=timezone.utc),
        "discrepancies": [DiscrepancyFactory.create()],
    }
    values.update(overrides)
    return StoredReport(**values)


@pytest.fixture
def reconciliation():
    service = MagicMock()
    with patch("routes.reconciliation.get_reconciliation_service", return_value=service):
        yield service


@pytest.fixture
def run_settings():
    service = MagicMock()
    service.load_run_config.return_value = RunConfig()
    service.get_current.return_value = RunSettingsResponse(run=RunConfig(), schedule=ScheduleConfig())
    service.update_settings.return_value = RunSettingsResponse(
        run=RunConfig(),
        schedule=ScheduleConfig(enabled=True, cron="0 6 * * *"),
    )
    with patch("routes.reconciliation.get_run_settings_service", return_value=service):
        yield service


@pytest.fixture
def scheduler():
    service = MagicMock()
    service.get_status.return_value = {"running": True, "enabled": False, "jobs": []}
    with patch("routes.reconciliation.get_scheduler_service", return_value=service):
        yield service


@pytest.fixture
def reports():
    service = MagicMock()
    with patch("routes.reports.get_report_service", return_value=service):
        yield service


class TestRunEndpoint:
    """Tests for POST /api/reconciliation/run."""

    def test_returns_summary(self, test_client, reconciliation, run_settings):
        discrepancies = [
            DiscrepancyFactory.create(sku=f"S{i}", brightpearl_stock=i + 2, infoplus_stock=1)
            for i in range(60)
        ]
        reconciliation.run.return_value = ReconciliationResult(
            run_id="abc123",
            report=ReportFactory.create(discrepancies=discrepancies),
            report_id="r-1",
        )

        response = test_client.post("/api/reconciliation/run")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["run_id"] == "abc123"
        assert body["report_id"] == "r-1"
        assert body["total_discrepancies"] == 60
        assert len(body["discrepancies"]) == 50
        assert "discrepancies need attention" in body["message"]
        reconciliation.run.assert_called_once_with(run_settings.load_run_config.return_value)

    def test_conflict_when_running(self, test_client, reconciliation, run_settings):
        reconciliation.run.side_effect = ReconciliationInProgressError("run-1")

        response = test_client.post("/api/reconciliation/run")

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "RECONCILIATION_IN_PROGRESS"
        assert error["details"]["active_run_id"] == "run-1"

    def test_bad_gateway_when_aborted(self, test_client, reconciliation, run_settings):
        reconciliation.run.side_effect = ReconciliationAbortedError(
            FetchError("infoplus", "timeout", "Infoplus timed out")
        )

        response = test_client.post("/api/reconciliation/run")

        assert response.status_code == 502
        error = response.json()["error"]
        assert error["code"] == "RECONCILIATION_ABORTED"
        assert error["details"]["source"] == "infoplus"

    def test_unexpected_error_is_500(self, test_client, reconciliation, run_settings):
        reconciliation.run.side_effect = RuntimeError("boom")

        response = test_client.post("/api/reconciliation/run")

        assert response.status_code == 500
        assert response.json()["error"]["code"] == "INTERNAL_ERROR"


class TestApiKey:
    """Tests for the X-API-Key guard."""

    def test_rejects_missing_key_when_configured(self, test_client, reconciliation, run_settings):
        with patch("routes.security.settings", MagicMock(api_key="secret")):
            response = test_client.post("/api/reconciliation/run")

        assert response.status_code == 401
        reconciliation.run.assert_not_called()

    def test_accepts_matching_key(self, test_client, reconciliation, run_settings):
        reconciliation.test_connections.return_value = {"brightpearl": {"success": True}}

        with patch("routes.security.settings", MagicMock(api_key="secret")):
            response = test_client.get(
                "/api/reconciliation/test-connections",
                headers={"X-API-Key": "secret"},
            )

        assert response.status_code == 200
        assert response.json()["brightpearl"]["success"] is True

    def test_open_when_not_configured(self, test_client, reconciliation):
        reconciliation.test_connections.return_value = {}

        with patch("routes.security.settings", MagicMock(api_key=None)):
            response = test_client.get("/api/reconciliation/test-connections")

        assert response.status_code == 200


class TestStatusAndSettings:
    """Tests for status and settings endpoints."""

    def test_status(self, test_client, reconciliation, scheduler):
        reconciliation.get_status.return_value = {"running": False, "active_run_id": None}

        response = test_client.get("/api/reconciliation/status")

        assert response.status_code == 200
        body = response.json()
        assert body["running"] is False
        assert body["scheduler"]["running"] is True

    def test_get_settings(self, test_client, run_settings):
        response = test_client.get("/api/reconciliation/settings")

        assert response.status_code == 200
        body = response.json()
        assert body["run"]["collision_policy"] == "first_wins"
        assert body["schedule"]["cron"] == "0 19 * * *"

    def test_update_settings_applies_schedule(self, test_client, run_settings, scheduler):
        response = test_client.put(
            "/api/reconciliation/settings",
            json={"cron_enabled": True, "cron_schedule": "0 6 * * *"},
        )

        assert response.status_code == 200
        scheduler.update_schedule.assert_called_once_with(
            run_settings.update_settings.return_value.schedule
        )

    def test_update_without_schedule_fields_leaves_scheduler(self, test_client, run_settings, scheduler):
        response = test_client.put("/api/reconciliation/settings", json={"ignored_skus": ["A"]})

        assert response.status_code == 200
        scheduler.update_schedule.assert_not_called()

    def test_rejected_schedule_is_422(self, test_client, run_settings, scheduler):
        scheduler.update_schedule.side_effect = KeyError("Mars/Olympus")

        response = test_client.put("/api/reconciliation/settings", json={"cron_timezone": "Mars/Olympus"})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "INVALID_SCHEDULE"

    def test_malformed_cron_is_422(self, test_client, run_settings):
        response = test_client.put("/api/reconciliation/settings", json={"cron_schedule": "* *"})

        assert response.status_code == 422
        run_settings.update_settings.assert_not_called()


class TestReportsEndpoints:
    """Tests for /api/reports."""

    def test_list(self, test_client, reports):
        summary = StoredReportSummary(**stored_report().model_dump(exclude={"discrepancies"}))
        reports.list_reports.return_value = StoredReportListResponse(data=[summary], total=1)

        response = test_client.get("/api/reports?limit=5")

        assert response.status_code == 200
        assert response.json()["total"] == 1
        reports.list_reports.assert_called_once_with(limit=5)

    def test_list_limit_validated(self, test_client, reports):
        response = test_client.get("/api/reports?limit=0")

        assert response.status_code == 422

    def test_get(self, test_client, reports):
        reports.get_report.return_value = stored_report()

        response = test_client.get("/api/reports/r-1")

        assert response.status_code == 200
        assert response.json()["discrepancies"][0]["sku"] == "SKU-1"

    def test_get_not_found(self, test_client, reports):
        reports.get_report.side_effect = ReportNotFoundError("missing")

        response = test_client.get("/api/reports/missing")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "REPORT_NOT_FOUND"

    def test_export(self, test_client, reports):
        reports.get_report.return_value = stored_report()

        response = test_client.get("/api/reports/r-1/export")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith(
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        )
        assert 'filename="inventory-report-2025-06-01.xlsx"' in response.headers["content-disposition"]
        wb = load_workbook(BytesIO(response.content))
        assert "Discrepancies" in wb.sheetnames

    def test_export_not_found(self, test_client, reports):
        reports.get_report.side_effect = ReportNotFoundError("missing")

        response = test_client.get("/api/reports/missing/export")

        assert response.status_code == 404


class TestHealth:
    """Tests for /health."""

    def test_degraded_when_database_down(self, test_client):
        with patch("main.check_connection", return_value={"status": "unhealthy", "error": "down"}):
            response = test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "degraded"
        assert body["scheduler"] == {"running": False, "enabled": False}
