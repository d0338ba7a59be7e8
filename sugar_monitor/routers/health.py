"""Health check endpoints for container orchestration."""

from typing import Any

from fastapi import APIRouter, Request, Response, status
from fastapi.responses import JSONResponse

from sugar_monitor.database import check_database_connection

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=None)
async def health_check(request: Request) -> Response:
    """Health check with database and scheduler status.

    Returns 200 with ``"status": "healthy"`` when the database answers,
    503 with ``"status": "degraded"`` otherwise. The scheduler state is
    informational and does not affect the status code.
    """
    db_connected = await check_database_connection()
    report_scheduler = getattr(request.app.state, "report_scheduler", None)

    content = {
        "status": "healthy" if db_connected else "degraded",
        "database": "connected" if db_connected else "disconnected",
        "scheduler": (
            "running"
            if report_scheduler is not None and report_scheduler.running
            else "stopped"
        ),
    }
    return JSONResponse(
        status_code=(
            status.HTTP_200_OK if db_connected else status.HTTP_503_SERVICE_UNAVAILABLE
        ),
        content=content,
    )


@router.get("/health/live")
async def liveness_probe() -> dict[str, Any]:
    """Liveness probe. Does not touch external dependencies."""
    return {"status": "alive"}
