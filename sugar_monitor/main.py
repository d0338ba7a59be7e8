"""Blood Sugar Monitor FastAPI Application."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sugar_monitor.config import settings, validate_mail_settings, validate_secret_key
from sugar_monitor.database import close_database, get_db_session
from sugar_monitor.logging_config import get_logger, setup_logging
from sugar_monitor.middleware import CorrelationIdMiddleware
from sugar_monitor.routers import alerts, health, patients, readings
from sugar_monitor.services.mail_transport import SmtpMailTransport
from sugar_monitor.services.notifier import Notifier
from sugar_monitor.services.scheduler import ReportScheduler
from sugar_monitor.services.weekly_report import WeeklyReportService

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler.

    uvicorn runs the shutdown half on SIGTERM/SIGINT. The scheduler is
    stopped before the database engine is disposed so no job can start
    against a closed engine.
    """
    # Note: Migrations are run by alembic before uvicorn starts
    validate_secret_key()
    missing = validate_mail_settings()
    if missing:
        logger.warning("Mail transport not configured", missing=missing)

    notifier = Notifier(SmtpMailTransport.from_settings())
    report_scheduler = ReportScheduler.from_settings(
        WeeklyReportService(
            get_db_session,
            notifier,
            week_start_day=settings.report_week_start,
        )
    )
    app.state.notifier = notifier
    app.state.report_scheduler = report_scheduler

    report_scheduler.start_all()
    logger.info("Blood Sugar Monitor API started")

    yield

    logger.info("Shutting down Blood Sugar Monitor API...")
    report_scheduler.stop_all()
    await close_database()
    logger.info("Blood Sugar Monitor API shutdown complete")


app = FastAPI(
    title="Blood Sugar Monitor API",
    description="Glucose readings, threshold alerts, and weekly reports",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware (order matters: first added = last executed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log unexpected errors and answer 500 without leaking details."""
    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


app.include_router(health.router)
app.include_router(readings.router)
app.include_router(alerts.router)
app.include_router(patients.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint."""
    return {
        "name": "Blood Sugar Monitor API",
        "version": "0.1.0",
        "docs": "/docs",
    }
