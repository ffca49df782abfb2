"""
Tests for ReportService - persistence and retrieval of stored reports.
"""

import json

import pytest

from exceptions import DatabaseError, PersistError, ReportNotFoundError
from services.report_service import ReportService
from tests.factories import DiscrepancyFactory, ReportFactory


def stored_row(report_id="r-1", discrepancies="[]", **overrides):
    row = {
        "id": report_id,
        "date": "2025-06-01",
        "total_discrepancies": 0,
        "discrepancies": discrepancies,
        "brightpearl_total_items": 100,
        "infoplus_total_items": 95,
        "created_at": "2025-06-01T19:00:00+00:00",
    }
    row.update(overrides)
    return row


class TestPersist:
    """Tests for ReportService.persist()."""

    def test_inserts_full_report(self, mock_db):
        discrepancies = [
            DiscrepancyFactory.create(sku=f"S{i}", brightpearl_stock=i + 1, infoplus_stock=0)
            for i in range(40)
        ]
        report = ReportFactory.create(discrepancies=discrepancies)

        report_id = ReportService().persist(report)

        assert report_id == "test-uuid-123"
        row = mock_db.writes["inventory_reports"][0]
        assert row["date"] == "2025-06-01"
        assert row["total_discrepancies"] == 40
        assert row["brightpearl_total_items"] == 100
        assert row["infoplus_total_items"] == 95
        # Stored in full, never truncated
        assert len(json.loads(row["discrepancies"])) == 40

    def test_payload_uses_wire_names(self, mock_db):
        report = ReportFactory.create(discrepancies=[
            DiscrepancyFactory.create(sku="A", brightpearl_stock=5, infoplus_stock=3)
        ])

        ReportService().persist(report)

        stored = json.loads(mock_db.writes["inventory_reports"][0]["discrepancies"])[0]
        assert stored["sku"] == "A"
        assert stored["difference"] == 2
        assert stored["match_type"] == "strict"

    def test_insert_exception_raises_persist_error(self, mock_db):
        service = ReportService()
        service.db = _FailingClient()

        with pytest.raises(PersistError) as exc_info:
            service.persist(ReportFactory.create())
        assert exc_info.value.status_code == 500

    def test_empty_response_raises_persist_error(self, mock_db):
        service = ReportService()
        service.db = _EmptyInsertClient()

        with pytest.raises(PersistError):
            service.persist(ReportFactory.create())

    def test_row_without_id_raises_persist_error(self, mock_db):
        service = ReportService()
        service.db = _EmptyInsertClient([{"date": "2025-06-01"}])

        with pytest.raises(PersistError):
            service.persist(ReportFactory.create())

    def test_integer_id_returned_as_text(self, mock_db):
        service = ReportService()
        service.db = _EmptyInsertClient([{"id": 42}])

        assert service.persist(ReportFactory.create()) == "42"


class TestListReports:
    """Tests for ReportService.list_reports()."""

    def test_returns_summaries(self, mock_db):
        mock_db.set_table_data("inventory_reports", [
            stored_row("r-2", total_discrepancies=3),
            stored_row("r-1"),
        ])

        result = ReportService().list_reports()

        assert result.total == 2
        assert [r.id for r in result.data] == ["r-2", "r-1"]
        assert result.data[0].total_discrepancies == 3

    def test_respects_limit(self, mock_db):
        mock_db.set_table_data("inventory_reports", [stored_row(f"r-{i}") for i in range(5)])

        assert ReportService().list_reports(limit=2).total == 2

    def test_empty(self, mock_db):
        assert ReportService().list_reports().data == []

    def test_integer_ids(self, mock_db):
        mock_db.set_table_data("inventory_reports", [stored_row(7), stored_row(6)])

        result = ReportService().list_reports()

        assert [r.id for r in result.data] == ["7", "6"]


class TestGetReport:
    """Tests for ReportService.get_report()."""

    def test_decodes_discrepancies(self, mock_db):
        discrepancy = DiscrepancyFactory.create(sku="A", brightpearl_stock=5, infoplus_stock=3)
        payload = json.dumps([discrepancy.model_dump(mode="json")])
        mock_db.set_table_data("inventory_reports", [
            stored_row("r-1", discrepancies=payload, total_discrepancies=1)
        ])

        report = ReportService().get_report("r-1")

        assert report.id == "r-1"
        assert report.discrepancies == [discrepancy]

    def test_accepts_already_decoded_payload(self, mock_db):
        discrepancy = DiscrepancyFactory.create(sku="B")
        mock_db.set_table_data("inventory_reports", [
            stored_row("r-1", discrepancies=[discrepancy.model_dump(mode="json")])
        ])

        assert ReportService().get_report("r-1").discrepancies[0].sku == "B"

    def test_integer_id_row(self, mock_db):
        mock_db.set_table_data("inventory_reports", [stored_row(42)])

        report = ReportService().get_report("42")

        assert report.id == "42"
        assert report.brightpearl_total_items == 100

    def test_null_payload_is_empty(self, mock_db):
        mock_db.set_table_data("inventory_reports", [stored_row("r-1", discrepancies=None)])

        assert ReportService().get_report("r-1").discrepancies == []

    def test_not_found(self, mock_db):
        mock_db.set_table_data("inventory_reports", [stored_row("r-1")])

        with pytest.raises(ReportNotFoundError) as exc_info:
            ReportService().get_report("missing")
        assert exc_info.value.status_code == 404

    def test_corrupt_payload(self, mock_db):
        mock_db.set_table_data("inventory_reports", [stored_row("r-1", discrepancies="{not json")])

        with pytest.raises(DatabaseError):
            ReportService().get_report("r-1")


# ===================
# HELPERS
# ===================

class _FailingClient:
    def table(self, name):
        raise ConnectionError("database unreachable")


class _EmptyInsertClient:
    def __init__(self, returned_rows=None):
        self.returned_rows = returned_rows or []

    def table(self, name):
        return self

    def insert(self, row):
        return self

    def execute(self):
        class Response:
            data = self.returned_rows
        return Response()
