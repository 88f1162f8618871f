"""
Reports Module

Reporting and analytics engine for the clinic application: date-window
resolution, per-domain aggregation, the comprehensive cross-domain report
and the API router that serves them.

Copyright: © 2025 Clinic Reports contributors
"""

from .router import router as reports_router
from .filters import DateRange, resolve_date_range, build_date_filter
from .handlers import ReportRequestHandler, ComprehensiveReports
from .models import ReportResponse, ErrorResponse, ReportMeta
from .service import ReportService, ReportDataError, RecordRepository

__all__ = [
    "reports_router",
    "DateRange",
    "resolve_date_range",
    "build_date_filter",
    "ReportRequestHandler",
    "ComprehensiveReports",
    "ReportResponse",
    "ErrorResponse",
    "ReportMeta",
    "ReportService",
    "ReportDataError",
    "RecordRepository"
]
