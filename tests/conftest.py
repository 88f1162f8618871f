"""
================================================================================
Clinic Reports - Unified Test Configuration and Fixtures
================================================================================
Description:
    Shared pytest configuration and fixtures for all tests (unit, API).
    Provides in-memory repositories, sample records, a temporary SQLite
    database and a FastAPI test client.

Fixtures:
    - temp_dir: Temporary directory for test files
    - fixed_now: Reference instant used by date-range tests (2024-02-15 10:30)
    - feb_window: Inclusive February 2024 window
    - make_service: Factory building a ReportService over in-memory records
    - db_manager: DatabaseManager over a temporary SQLite file (seed with insert_rows)
    - client: FastAPI test client with the report service overridden
================================================================================
"""
import os
import sys
import shutil
import tempfile
from datetime import datetime
from pathlib import Path

import pandas as pd
import pytest

# Add project root to path for all tests
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

os.environ.setdefault("CLINIC_ENVIRONMENT", "testing")

from clinic_reports.reports.filters import DateRange  # noqa: E402
from clinic_reports.reports.service import RecordRepository, ReportService, SOURCES  # noqa: E402

# Time field per source used by the in-memory repositories
TIME_FIELDS = {
    'patients': 'created_at',
    'lab_results': 'requested_at',
    'drug_orders': 'ordered_at',
    'sales': 'created_at',
    'payments': 'created_at',
    'walk_in_services': 'created_at',
}


class InMemoryRepository(RecordRepository):
    """Repository over a fixed list of records, filtered like the SQL one"""

    def __init__(self, source, records=None):
        self.source = source
        self.records = list(records or [])
        self.calls = []

    def fetch(self, window=None):
        self.calls.append(window)
        time_field = TIME_FIELDS.get(self.source)
        if window is None or time_field is None:
            return list(self.records)
        return [r for r in self.records if window.contains(getattr(r, time_field))]


class FailingRepository(RecordRepository):
    """Repository whose reads always fail"""

    def __init__(self, source, error=None):
        self.source = source
        self.error = error or ConnectionError("data store unreachable")

    def fetch(self, window=None):
        raise self.error


def insert_rows(db_manager, table_name, rows):
    """Append rows (list of dicts) to a source table with pandas; returns the row count"""
    df = pd.DataFrame(rows)
    if df.empty:
        return 0
    with db_manager.pool.get_connection() as conn:
        df.to_sql(table_name, conn, if_exists='append', index=False)
        conn.commit()
    return len(df)


def build_service(**records):
    """Build a ReportService; keyword names are source names"""
    repositories = {}
    for source in SOURCES:
        value = records.get(source, [])
        if isinstance(value, RecordRepository):
            repositories[source] = value
        else:
            repositories[source] = InMemoryRepository(source, value)
    return ReportService(repositories)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests"""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fixed_now():
    """Reference instant: Thursday 15 February 2024, 10:30"""
    return datetime(2024, 2, 15, 10, 30)


@pytest.fixture
def feb_window():
    """February 2024 as an inclusive window"""
    return DateRange(datetime(2024, 2, 1), datetime(2024, 2, 29, 23, 59, 59))


@pytest.fixture
def make_service():
    """Factory fixture for in-memory report services"""
    return build_service


@pytest.fixture
def db_manager(temp_dir):
    """DatabaseManager over a temporary SQLite database"""
    from clinic_reports.database import DatabaseManager
    manager = DatabaseManager(temp_dir / "clinic.db")
    yield manager
    manager.close()


@pytest.fixture
def client():
    """Create a FastAPI test client; tests set app.dependency_overrides as needed"""
    from fastapi.testclient import TestClient
    from clinic_reports.app import app
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def project_root_path():
    """Return the project root path"""
    return project_root
