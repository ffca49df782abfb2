"""
Shared test fixtures.
"""

import os
import sys
from pathlib import Path

# Add project root to Python path
project_dir = Path(__file__).parent.parent
sys.path.insert(0, str(project_dir))

# Required settings must exist before config is imported
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")

import pytest
from unittest.mock import patch
from datetime import datetime, timezone
from typing import Generator

from config.settings import Settings

# ===================
# MOCK SUPABASE CLIENT
# ===================

class MockSupabaseResponse:
    """Mock Supabase query response."""

    def __init__(self, data: list = None, count: int = None):
        self.data = data or []
        self.count = count if count is not None else len(self.data)


class MockSupabaseQuery:
    """Mock Supabase query builder with chainable methods."""

    def __init__(self, data: list = None, count: int = None, writes: list = None):
        self._data = data or []
        self._count = count
        self._writes = writes if writes is not None else []

    def select(self, *args, **kwargs):
        return self

    def insert(self, data):
        # Simulate insert - add id and timestamp
        if isinstance(data, dict):
            data = [data]
        rows = []
        for item in data:
            row = {**item}
            row.setdefault("id", "test-uuid-123")
            row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
            rows.append(row)
        self._writes.extend(rows)
        self._data = rows
        return self

    def upsert(self, data, **kwargs):
        if isinstance(data, dict):
            data = [data]
        self._writes.extend(data)
        self._data = list(data)
        return self

    # PostgREST filters are sent as text, so 42 matches "42"
    def eq(self, column, value):
        self._data = [row for row in self._data if str(row.get(column)) == str(value)]
        return self

    def in_(self, column, values):
        self._data = [row for row in self._data if row.get(column) in values]
        return self

    def order(self, column, **kwargs):
        return self

    def limit(self, count):
        self._data = self._data[:count]
        return self

    def execute(self) -> MockSupabaseResponse:
        return MockSupabaseResponse(
            data=self._data,
            count=self._count if self._count is not None else len(self._data)
        )


class MockSupabaseTable:
    """Mock Supabase table with configurable responses."""

    def __init__(self, data: list = None, count: int = None, writes: list = None):
        self._data = data or []
        self._count = count
        self._writes = writes

    def _query(self) -> MockSupabaseQuery:
        return MockSupabaseQuery(self._data.copy(), self._count, self._writes)

    def select(self, *args, **kwargs):
        return self._query()

    def insert(self, data):
        return self._query().insert(data)

    def upsert(self, data, **kwargs):
        return self._query().upsert(data, **kwargs)


class MockSupabaseClient:
    """Mock Supabase client. Records inserts/upserts per table in `writes`."""

    def __init__(self):
        self._tables = {}
        self.writes: dict[str, list] = {}

    def set_table_data(self, table_name: str, data: list, count: int = None):
        """Configure mock data for a table."""
        self._tables[table_name] = {"data": data, "count": count}

    def table(self, name: str) -> MockSupabaseTable:
        """Get mock table."""
        config = self._tables.get(name, {"data": [], "count": None})
        writes = self.writes.setdefault(name, [])
        return MockSupabaseTable(config["data"], config["count"], writes)


# ===================
# FIXTURES
# ===================

@pytest.fixture
def mock_supabase() -> MockSupabaseClient:
    """
    Create a mock Supabase client.

    Usage:
        def test_something(mock_supabase):
            mock_supabase.set_table_data("app_settings", [
                {"key": "email_notifications", "value": "true"}
            ])
    """
    return MockSupabaseClient()


@pytest.fixture
def mock_db(mock_supabase) -> Generator:
    """
    Patch the database client with mock.

    Any service constructed inside the test gets the mock.
    """
    with patch("config.database.get_supabase_client", return_value=mock_supabase):
        with patch("services.report_service.get_supabase_client", return_value=mock_supabase):
            with patch("services.run_settings_service.get_supabase_client", return_value=mock_supabase):
                yield mock_supabase


@pytest.fixture
def test_settings() -> Settings:
    """Settings with credentials filled in and no rate-limit pauses."""
    return Settings(
        supabase_url="https://test-project.supabase.co",
        supabase_key="test-anon-key",
        brightpearl_base_url="https://bp.example.com/public-api",
        brightpearl_account="texon",
        brightpearl_app_ref="texon_app",
        brightpearl_token="bp-token-123456789",
        brightpearl_page_delay_seconds=0,
        infoplus_company_id="texon",
        infoplus_api_key="ip-key-123456789",
        infoplus_page_delay_seconds=0,
        telegram_bot_token=None,
        telegram_chat_id=None,
    )


@pytest.fixture(autouse=True)
def reset_singletons():
    """Service singletons must not leak mocks between tests."""
    import services.export_service as export_module
    import services.notification_service as notification_module
    import services.reconciliation_service as reconciliation_module
    import services.report_service as report_module
    import services.run_settings_service as run_settings_module
    import services.scheduler_service as scheduler_module

    yield

    export_module._export_service = None
    notification_module._notification_service = None
    reconciliation_module._reconciliation_service = None
    report_module._report_service = None
    run_settings_module._run_settings_service = None
    scheduler_module._scheduler_service = None


# ===================
# API TEST CLIENT
# ===================

@pytest.fixture
def test_client():
    """
    Create FastAPI test client.

    The lifespan (database check, scheduler) is not run.

    Usage:
        def test_endpoint(test_client):
            response = test_client.get("/health")
    """
    from fastapi.testclient import TestClient
    from main import app

    return TestClient(app)
