"""
Report Models

Pydantic models for report API responses. Defines the success and failure
envelopes, report metadata and the selector catalog.

Copyright: © 2025 Clinic Reports contributors
"""

from typing import Dict, Any, List
from pydantic import BaseModel, Field


class ReportMeta(BaseModel):
    """Metadata describing how a report was produced"""
    reportType: str = Field(..., description="Report type actually generated")
    dateRange: str = Field(..., description="Range key actually applied")
    startDate: str = Field(..., description="Window start (ISO 8601 with UTC offset)")
    endDate: str = Field(..., description="Window end, inclusive (ISO 8601 with UTC offset)")
    generatedAt: str = Field(..., description="Instant the request was processed (ISO 8601 with UTC offset)")


class ReportResponse(BaseModel):
    """Successful report response"""
    success: bool = True
    data: Dict[str, Any]
    meta: ReportMeta


class ErrorResponse(BaseModel):
    """Failed report response"""
    success: bool = False
    error: str


class ReportOption(BaseModel):
    """Selectable report type or date range"""
    value: str
    label: str
    description: str


class ReportOptions(BaseModel):
    """Available report selectors"""
    report_types: List[ReportOption]
    date_ranges: List[ReportOption]
    defaults: Dict[str, str]
