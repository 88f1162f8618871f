"""
Report Service (Data Access Layer)

Data access layer for report queries. Each source collection is read through
a read-only repository so the aggregation layer can run against the SQLite
store in production and against in-memory fixtures in tests. Every read
failure surfaces as ReportDataError.

Copyright: © 2025 Clinic Reports contributors
"""

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from .filters import DateRange, DATE_COLUMN_MAP, build_date_filter
from .records import Patient, LabResult, DrugOrder, Drug, Sale, Payment, WalkInService


logger = logging.getLogger(__name__)

# Widest gap between UTC and any local wall clock
SQL_PREFILTER_MARGIN = timedelta(hours=14)


# Source name -> record type, in overview order
SOURCES: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    'patients': Patient.from_row,
    'lab_results': LabResult.from_row,
    'drug_orders': DrugOrder.from_row,
    'drugs': Drug.from_row,
    'sales': Sale.from_row,
    'payments': Payment.from_row,
    'walk_in_services': WalkInService.from_row,
}

# Snapshot sources always return the full current set
SNAPSHOT_SOURCES = frozenset({'drugs'})


class ReportDataError(Exception):
    """Raised when a source collection cannot be read"""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source


class RecordRepository(ABC):
    """Read-only access to one source collection"""

    source: str

    @abstractmethod
    def fetch(self, window: Optional[DateRange] = None) -> List[Any]:
        """Return records inside window (all records when window is None)"""
        pass


class SQLiteRecordRepository(RecordRepository):
    """Repository backed by a table in the clinic SQLite database"""

    def __init__(self, db_manager, source: str):
        if source not in SOURCES:
            raise ValueError(f"Unknown report source: {source}")
        self.db_manager = db_manager
        self.source = source
        self._parse_row = SOURCES[source]

    def fetch(self, window: Optional[DateRange] = None) -> List[Any]:
        """
        Read records inside window.

        The SQL clause only narrows the scan; membership is decided on the
        parsed local timestamp so offsets and fractional seconds are honoured.
        """
        date_filter, params = build_date_filter(self.source, window, margin=SQL_PREFILTER_MARGIN)
        query = f"SELECT * FROM {self.source} WHERE 1=1{date_filter}"
        try:
            df = self.db_manager.read_dataframe(query, params)
            records = [self._parse_row(row) for row in df.to_dict(orient='records')]
        except Exception as e:
            raise ReportDataError(self.source, str(e)) from e

        time_field = DATE_COLUMN_MAP.get(self.source)
        if window is None or time_field is None:
            return records
        return [r for r in records if window.contains(getattr(r, time_field))]


class ReportService:
    """Entry point for report reads across all source collections"""

    def __init__(self, repositories: Dict[str, RecordRepository]):
        missing = set(SOURCES) - set(repositories)
        if missing:
            raise ValueError(f"Missing repositories for: {', '.join(sorted(missing))}")
        self.repositories = repositories

    @classmethod
    def from_database(cls, db_manager) -> 'ReportService':
        """Build a service with a SQLite repository per source table"""
        return cls({source: SQLiteRecordRepository(db_manager, source) for source in SOURCES})

    def fetch(self, source: str, window: Optional[DateRange] = None) -> List[Any]:
        """
        Fetch records for one source.

        Args:
            source: Source name (see SOURCES)
            window: Report window; ignored for snapshot sources

        Returns:
            List of typed records

        Raises:
            ReportDataError: If the source cannot be read
        """
        if source in SNAPSHOT_SOURCES:
            window = None
        try:
            records = self.repositories[source].fetch(window)
        except ReportDataError:
            raise
        except Exception as e:
            raise ReportDataError(source, str(e)) from e
        logger.debug(f"Fetched {len(records)} {source} records")
        return records
