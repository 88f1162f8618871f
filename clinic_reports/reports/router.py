"""
Report Router (API Layer)

FastAPI router exposing the report engine. The report endpoint delegates to
ReportRequestHandler and runs the blocking aggregation off the event loop;
failures come back as the {success: false, error} envelope with HTTP 500.

Copyright: © 2025 Clinic Reports contributors
"""

import logging
from typing import Optional
from fastapi import APIRouter, Query, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..config import config
from .filters import REPORT_TYPES, DATE_RANGES
from .handlers import ReportRequestHandler
from .models import ReportResponse, ErrorResponse, ReportOptions, ReportOption
from .service import ReportService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/reports", tags=["reports"])


def get_report_service() -> ReportService:
    """Get report service instance backed by the application database"""
    from ..app import app_state
    return ReportService.from_database(app_state["db_manager"])


def get_request_handler(
    service: ReportService = Depends(get_report_service)
) -> ReportRequestHandler:
    """Get a request handler bound to the report service"""
    return ReportRequestHandler(service, config.reports)


@router.get(
    "",
    response_model=ReportResponse,
    responses={500: {"model": ErrorResponse}}
)
async def get_report(
    report_type: Optional[str] = Query(None, alias="type"),
    date_range: Optional[str] = Query(None, alias="range"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    handler: ReportRequestHandler = Depends(get_request_handler)
):
    """Generate a report for the requested type and date range"""
    result = await run_in_threadpool(handler.handle, report_type, date_range, start_date, end_date)
    if not result['success']:
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(error=result['error']).model_dump()
        )
    return result


@router.get("/options", response_model=ReportOptions)
async def get_report_options():
    """Get selectable report types and date ranges"""
    return ReportOptions(
        report_types=[ReportOption(**option) for option in REPORT_TYPES],
        date_ranges=[ReportOption(**option) for option in DATE_RANGES],
        defaults={
            'type': config.reports.default_report_type,
            'range': config.reports.default_date_range
        }
    )
