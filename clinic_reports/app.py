"""
Main Application - Clinic Reports API

FastAPI application serving the clinic reporting and analytics endpoints.
Owns the database manager lifecycle, CORS, a health check and the catch-all
error handler.

Copyright: © 2025 Clinic Reports contributors
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .config import config, setup_logging
from .database import get_database_manager
from .reports import reports_router


# Global state
app_state = {
    "db_manager": None
}

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    setup_logging()

    # Startup
    app_state["db_manager"] = get_database_manager()
    logger.info(f"Clinic reports started ({config.environment.value})")
    logger.debug(f"Configuration: {config.to_dict()}")

    yield

    # Shutdown
    logger.info("Shutting down application...")
    if app_state.get("db_manager"):
        try:
            app_state["db_manager"].close()
        except Exception as e:
            logger.error(f"Error closing database connections: {e}")


app = FastAPI(
    title="Clinic Reports",
    description="Reporting and analytics API for clinic operations",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.web.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(reports_router)


@app.get("/health")
async def health_check():
    """Liveness check with database status"""
    db_manager = app_state.get("db_manager")
    database_ok = db_manager.check_connection() if db_manager else False
    return {
        "status": "ok" if database_ok else "degraded",
        "database": database_ok,
        "tables": db_manager.get_table_stats() if database_ok else {},
        "pool": db_manager.pool.get_pool_stats() if db_manager else {}
    }


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler for unhandled errors"""
    logger.error(
        f"Unhandled Exception: {request.method} {request.url.path}\n"
        f"  Exception Type: {type(exc).__name__}\n"
        f"  Message: {str(exc)}",
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "An unexpected error occurred",
            "path": str(request.url.path)
        }
    )


def main():
    """Run the API server"""
    uvicorn.run(
        "clinic_reports.app:app",
        host=config.web.host,
        port=config.web.port,
        reload=config.web.reload,
        log_level=config.web.log_level
    )


if __name__ == "__main__":
    main()
