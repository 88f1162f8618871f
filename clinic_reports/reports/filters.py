"""
Report Filters

Date-window and selector utilities for reports. Resolves a named date range
(today, week, month, quarter, year, custom) into a concrete inclusive window,
normalises report selectors with documented fallbacks, and builds the
parameterised SQL date filters used by the data access layer.

Copyright: © 2025 Clinic Reports contributors
"""

import calendar
import logging
from dataclasses import dataclass
from datetime import datetime, date, timedelta
from typing import Optional, Tuple, List, Any

from .records import parse_timestamp

logger = logging.getLogger(__name__)


REPORT_TYPES = [
    {'value': 'comprehensive', 'label': 'Comprehensive Report',
     'description': 'Complete overview of all clinic operations'},
    {'value': 'patients', 'label': 'Patients Report',
     'description': 'Patient demographics and statistics'},
    {'value': 'lab-results', 'label': 'Lab Requests & Results Report',
     'description': 'Laboratory test requests, results, and completion rates'},
    {'value': 'drug-orders', 'label': 'Drug Orders Report',
     'description': 'Prescription and dispensing statistics'},
    {'value': 'inventories', 'label': 'Inventory Report',
     'description': 'Drug inventory levels and stock management'},
    {'value': 'sales', 'label': 'Sales Report',
     'description': 'Pharmacy sales and revenue statistics'},
    {'value': 'payments', 'label': 'Payments Report',
     'description': 'Payment processing and financial transactions'},
    {'value': 'walk-in-services', 'label': 'Walk-in Services Report',
     'description': 'Quick services and direct patient care'},
]

DATE_RANGES = [
    {'value': 'today', 'label': 'Today', 'description': 'Current day data'},
    {'value': 'week', 'label': 'This Week', 'description': 'Current week data'},
    {'value': 'month', 'label': 'This Month', 'description': 'Current month data'},
    {'value': 'quarter', 'label': 'This Quarter', 'description': 'Current quarter data'},
    {'value': 'year', 'label': 'This Year', 'description': 'Current year data'},
    {'value': 'custom', 'label': 'Custom Range', 'description': 'Select specific date range'},
]

REPORT_TYPE_VALUES = frozenset(option['value'] for option in REPORT_TYPES)
DATE_RANGE_VALUES = frozenset(option['value'] for option in DATE_RANGES)

DEFAULT_REPORT_TYPE = 'sales'
DEFAULT_DATE_RANGE = 'month'

# Map source tables to the column that places a record in time.
# Tables without an entry (drugs) are snapshots and are never date filtered.
DATE_COLUMN_MAP = {
    'patients': 'created_at',
    'lab_results': 'requested_at',
    'drug_orders': 'ordered_at',
    'sales': 'created_at',
    'payments': 'created_at',
    'walk_in_services': 'created_at',
}


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] report window"""
    start: datetime
    end: datetime

    def contains(self, moment: Optional[datetime]) -> bool:
        if moment is None:
            return False
        return self.start <= moment <= self.end


def normalize_report_type(report_type: Optional[str], default: str = DEFAULT_REPORT_TYPE) -> str:
    """
    Map a requested report type to a known one; anything unrecognised becomes the default.

    Matching ignores case and surrounding whitespace, so ' Payments ' selects
    payments rather than falling back.
    """
    value = (report_type or '').strip().lower()
    if value in REPORT_TYPE_VALUES:
        return value
    if value:
        logger.info(f"Unknown report type '{report_type}', using '{default}'")
    return default


def normalize_date_range(date_range: Optional[str], default: str = DEFAULT_DATE_RANGE) -> str:
    """Map a requested range key to a known one, ignoring case and surrounding whitespace"""
    value = (date_range or '').strip().lower()
    if value in DATE_RANGE_VALUES:
        return value
    if value:
        logger.info(f"Unknown date range '{date_range}', using '{default}'")
    return default


def _start_of_day(day: date) -> datetime:
    return datetime(day.year, day.month, day.day)


def _end_of_day(day: date) -> datetime:
    return datetime(day.year, day.month, day.day, 23, 59, 59)


def _last_day_of_month(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def _parse_explicit(value: Optional[str], fallback: datetime, name: str) -> datetime:
    if not value:
        return fallback
    parsed = parse_timestamp(value)
    if parsed is None:
        logger.warning(f"Unparseable {name} '{value}', using {fallback.isoformat()}")
        return fallback
    return parsed


def resolve_date_range(
    date_range: Optional[str],
    start_date: Optional[str] = None,
    end_date: Optional[str] = None,
    now: Optional[datetime] = None
) -> DateRange:
    """
    Resolve a range key into a concrete window relative to now.

    Args:
        date_range: today, week, month, quarter, year or custom.
            Unknown keys fall back to month.
        start_date: ISO date/datetime, only used for custom
        end_date: ISO date/datetime, only used for custom
        now: Reference instant (local, naive); defaults to datetime.now()

    Returns:
        DateRange whose end carries 23:59:59 for calendar ranges.
        Missing or unparseable custom bounds fall back to the bounds of
        now's year.
    """
    now = now or datetime.now()
    today = now.date()
    key = normalize_date_range(date_range)

    if key == 'today':
        return DateRange(_start_of_day(today), _end_of_day(today))

    if key == 'week':
        # Week-to-date, weeks start on Sunday
        sunday = today - timedelta(days=(today.weekday() + 1) % 7)
        return DateRange(_start_of_day(sunday), _end_of_day(today))

    if key == 'quarter':
        first_month = ((today.month - 1) // 3) * 3 + 1
        return DateRange(
            _start_of_day(date(today.year, first_month, 1)),
            _end_of_day(_last_day_of_month(today.year, first_month + 2))
        )

    year_start = _start_of_day(date(today.year, 1, 1))
    year_end = _end_of_day(date(today.year, 12, 31))

    if key == 'year':
        return DateRange(year_start, year_end)

    if key == 'custom':
        start = _parse_explicit(start_date, year_start, 'startDate')
        end = _parse_explicit(end_date, year_end, 'endDate')
        if start > end:
            logger.warning(f"Custom range start {start.isoformat()} is after end {end.isoformat()}, swapping")
            start, end = end, start
        return DateRange(start, end)

    return DateRange(
        _start_of_day(date(today.year, today.month, 1)),
        _end_of_day(_last_day_of_month(today.year, today.month))
    )


def build_date_filter(
    table: str,
    window: Optional[DateRange] = None,
    margin: timedelta = timedelta(0)
) -> Tuple[str, List[Any]]:
    """
    Build WHERE clause fragment and params for date filtering.

    SQLite's datetime() normalises offset-bearing values to UTC and drops
    fractional seconds, so the clause is only exact for naive whole-second
    values. Callers that need exact local-calendar membership pass a margin
    and re-check each parsed record with DateRange.contains.

    Args:
        table: Table name to determine the date column
        window: Inclusive window; None disables filtering
        margin: Amount to widen the window by on both sides

    Returns:
        Tuple of (where_clause_fragment, params_list)
        Example: (" AND datetime(created_at) >= datetime(?) AND datetime(created_at) <= datetime(?)",
                  ["2024-01-01T00:00:00", "2024-01-31T23:59:59"])
    """
    date_col = DATE_COLUMN_MAP.get(table)
    if window is None or date_col is None:
        return "", []

    where_clause = (
        f" AND datetime({date_col}) >= datetime(?)"
        f" AND datetime({date_col}) <= datetime(?)"
    )
    return where_clause, [(window.start - margin).isoformat(), (window.end + margin).isoformat()]
