"""
================================================================================
Clinic Reports - Report Filters Unit Tests
================================================================================
Description:
    Unit tests for the report filters module: date range resolution,
    selector normalisation with silent fallbacks, and the parameterised
    SQL date filter used by the data access layer.

Test Coverage:
    - Calendar ranges (today, week, month, quarter, year)
    - Custom ranges with valid, missing and unparseable bounds
    - start <= end for every range key
    - Report type / range key fallbacks
    - Table-specific date column mapping
================================================================================
"""
import pytest
from datetime import datetime, timedelta

from clinic_reports.reports.filters import (
    DateRange,
    DATE_RANGE_VALUES,
    build_date_filter,
    normalize_date_range,
    normalize_report_type,
    resolve_date_range,
)


class TestResolveDateRange:
    """Test suite for named date ranges"""

    def test_today(self, fixed_now):
        """Today spans midnight to 23:59:59 of the same date"""
        window = resolve_date_range('today', now=fixed_now)

        assert window.start == datetime(2024, 2, 15)
        assert window.end == datetime(2024, 2, 15, 23, 59, 59)

    def test_week_is_week_to_date_from_sunday(self, fixed_now):
        """Week starts on the most recent Sunday and ends today"""
        window = resolve_date_range('week', now=fixed_now)

        assert window.start == datetime(2024, 2, 11)
        assert window.end == datetime(2024, 2, 15, 23, 59, 59)

    def test_week_on_a_sunday_starts_that_day(self):
        """A Sunday is its own week start"""
        window = resolve_date_range('week', now=datetime(2024, 2, 18, 8, 0))

        assert window.start == datetime(2024, 2, 18)
        assert window.end == datetime(2024, 2, 18, 23, 59, 59)

    def test_week_on_a_saturday(self):
        """Saturday reaches back six days"""
        window = resolve_date_range('week', now=datetime(2024, 3, 2, 8, 0))

        assert window.start == datetime(2024, 2, 25)

    def test_month_leap_february(self, fixed_now):
        """Month covers the full calendar month, including Feb 29 in leap years"""
        window = resolve_date_range('month', now=fixed_now)

        assert window.start == datetime(2024, 2, 1)
        assert window.end == datetime(2024, 2, 29, 23, 59, 59)

    @pytest.mark.parametrize("day", [1, 15, 31])
    def test_month_independent_of_day(self, day):
        """The day of month never changes the window"""
        window = resolve_date_range('month', now=datetime(2023, 1, day, 12, 0))

        assert window.start == datetime(2023, 1, 1)
        assert window.end == datetime(2023, 1, 31, 23, 59, 59)

    @pytest.mark.parametrize("day", [1, 15, 30])
    def test_quarter_for_april(self, day):
        """Any April date resolves to the second quarter"""
        window = resolve_date_range('quarter', now=datetime(2024, 4, day, 9, 0))

        assert window.start == datetime(2024, 4, 1)
        assert window.end == datetime(2024, 6, 30, 23, 59, 59)

    def test_quarter_for_december(self):
        """December belongs to the fourth quarter"""
        window = resolve_date_range('quarter', now=datetime(2024, 12, 31, 23, 0))

        assert window.start == datetime(2024, 10, 1)
        assert window.end == datetime(2024, 12, 31, 23, 59, 59)

    def test_year(self, fixed_now):
        """Year spans Jan 1 to Dec 31 23:59:59"""
        window = resolve_date_range('year', now=fixed_now)

        assert window.start == datetime(2024, 1, 1)
        assert window.end == datetime(2024, 12, 31, 23, 59, 59)

    def test_unknown_key_falls_back_to_month(self, fixed_now):
        """Unknown keys get month semantics"""
        assert resolve_date_range('fortnight', now=fixed_now) == resolve_date_range('month', now=fixed_now)

    def test_missing_key_falls_back_to_month(self, fixed_now):
        """A missing key gets month semantics"""
        assert resolve_date_range(None, now=fixed_now) == resolve_date_range('month', now=fixed_now)

    def test_defaults_to_current_time(self):
        """Without now, the window is built around the current date"""
        window = resolve_date_range('today')

        assert window.start.date() == datetime.now().date()

    @pytest.mark.parametrize("key", sorted(DATE_RANGE_VALUES) + ['bogus'])
    @pytest.mark.parametrize("now", [
        datetime(2024, 1, 1, 0, 0),
        datetime(2024, 2, 29, 23, 59, 59),
        datetime(2023, 12, 31, 12, 0),
        datetime(2024, 7, 7, 7, 7),
    ])
    def test_start_never_after_end(self, key, now):
        """start <= end holds for every key and reference instant"""
        window = resolve_date_range(key, now=now)

        assert window.start <= window.end


class TestCustomDateRange:
    """Test suite for custom date ranges"""

    def test_explicit_bounds(self, fixed_now):
        """Valid bounds are used as given"""
        window = resolve_date_range('custom', '2024-01-10', '2024-01-20T18:00:00', now=fixed_now)

        assert window.start == datetime(2024, 1, 10)
        assert window.end == datetime(2024, 1, 20, 18, 0)

    def test_missing_bounds_fall_back_to_year(self, fixed_now):
        """Missing bounds fall back to the bounds of the current year"""
        window = resolve_date_range('custom', now=fixed_now)

        assert window.start == datetime(2024, 1, 1)
        assert window.end == datetime(2024, 12, 31, 23, 59, 59)

    def test_unparseable_bounds_fall_back_silently(self, fixed_now):
        """Garbage dates do not raise"""
        window = resolve_date_range('custom', 'not-a-date', '2024-13-45', now=fixed_now)

        assert window.start == datetime(2024, 1, 1)
        assert window.end == datetime(2024, 12, 31, 23, 59, 59)

    def test_only_start_given(self, fixed_now):
        """A single bound keeps the other year bound"""
        window = resolve_date_range('custom', '2024-03-01', None, now=fixed_now)

        assert window.start == datetime(2024, 3, 1)
        assert window.end == datetime(2024, 12, 31, 23, 59, 59)

    def test_reversed_bounds_are_swapped(self, fixed_now):
        """start <= end holds even for reversed explicit bounds"""
        window = resolve_date_range('custom', '2024-05-01', '2024-04-01', now=fixed_now)

        assert window.start == datetime(2024, 4, 1)
        assert window.end == datetime(2024, 5, 1)

    def test_explicit_bounds_ignored_for_other_ranges(self, fixed_now):
        """startDate/endDate only matter for custom"""
        window = resolve_date_range('year', '2020-01-01', '2020-12-31', now=fixed_now)

        assert window.start == datetime(2024, 1, 1)


class TestNormalizeSelectors:
    """Test suite for selector fallbacks"""

    @pytest.mark.parametrize("value", [
        'patients', 'lab-results', 'drug-orders', 'inventories',
        'sales', 'payments', 'walk-in-services', 'comprehensive'
    ])
    def test_known_report_types(self, value):
        """Known report types pass through"""
        assert normalize_report_type(value) == value

    @pytest.mark.parametrize("value", [None, '', 'invoices', 'DROP TABLE'])
    def test_unknown_report_type_defaults_to_sales(self, value):
        """Unknown report types become sales"""
        assert normalize_report_type(value) == 'sales'

    def test_report_type_is_case_insensitive(self):
        """Selectors are matched case-insensitively"""
        assert normalize_report_type(' Payments ') == 'payments'

    def test_unknown_date_range_defaults_to_month(self):
        """Unknown range keys become month"""
        assert normalize_date_range('decade') == 'month'
        assert normalize_date_range(None) == 'month'

    def test_custom_default(self):
        """The fallback value can be configured"""
        assert normalize_report_type('nope', default='comprehensive') == 'comprehensive'


class TestBuildDateFilter:
    """Test suite for date filter builder"""

    def test_no_window(self):
        """No window means no filter"""
        where_clause, params = build_date_filter('sales', None)

        assert where_clause == ""
        assert params == []

    def test_lab_results_use_requested_at(self, feb_window):
        """Lab results are placed in time by requested_at"""
        where_clause, params = build_date_filter('lab_results', feb_window)

        assert 'requested_at' in where_clause
        assert params == ['2024-02-01T00:00:00', '2024-02-29T23:59:59']

    def test_drug_orders_use_ordered_at(self, feb_window):
        """Drug orders are placed in time by ordered_at"""
        where_clause, _ = build_date_filter('drug_orders', feb_window)

        assert 'ordered_at' in where_clause

    def test_drugs_are_never_filtered(self, feb_window):
        """Inventory is a snapshot"""
        assert build_date_filter('drugs', feb_window) == ("", [])

    def test_where_clause_format(self, feb_window):
        """Inclusive bounds, appended to an existing WHERE"""
        where_clause, _ = build_date_filter('payments', feb_window)

        assert where_clause.startswith(' AND ')
        assert '>=' in where_clause and '<=' in where_clause
        assert where_clause.count('?') == 2

    def test_margin_widens_bounds(self, feb_window):
        where_clause, params = build_date_filter('patients', feb_window, margin=timedelta(hours=14))

        assert 'created_at' in where_clause
        assert params == ['2024-01-31T10:00:00', '2024-03-01T13:59:59']


class TestDateRange:
    """Test suite for DateRange membership"""

    def test_bounds_are_inclusive(self, feb_window):
        assert feb_window.contains(datetime(2024, 2, 1))
        assert feb_window.contains(datetime(2024, 2, 29, 23, 59, 59))

    def test_outside(self, feb_window):
        assert not feb_window.contains(datetime(2024, 1, 31, 23, 59, 59))
        assert not feb_window.contains(datetime(2024, 3, 1))

    def test_missing_timestamp(self, feb_window):
        assert not feb_window.contains(None)
