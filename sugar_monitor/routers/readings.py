"""Glucose readings router.

Recording a reading also evaluates it against the user's alert
configuration. Alert storage and email delivery problems never fail the
request because the reading is already saved.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.config import settings
from sugar_monitor.core.auth import CurrentUser
from sugar_monitor.core.errors import PersistenceError
from sugar_monitor.database import get_db
from sugar_monitor.dependencies import get_notifier
from sugar_monitor.logging_config import get_logger
from sugar_monitor.schemas.reading import (
    ReadingCreate,
    ReadingCreatedResponse,
    ReadingDeletedResponse,
    ReadingStatsResponse,
    ReadingTrendsResponse,
    StatsPeriod,
    TrendGrouping,
)
from sugar_monitor.services.alert_evaluation import evaluate_reading
from sugar_monitor.services.notifier import Notifier
from sugar_monitor.services.readings import (
    create_reading,
    delete_reading,
    get_reading_stats,
    get_reading_trends,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/api/readings", tags=["readings"])


@router.post(
    "",
    response_model=ReadingCreatedResponse,
    status_code=status.HTTP_201_CREATED,
)
async def record_reading(
    body: ReadingCreate,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> ReadingCreatedResponse:
    """Record a glucose reading and fire an alert if it breaches a threshold."""
    try:
        reading = await create_reading(db, current_user.id, body)
    except PersistenceError as e:
        logger.error(
            "Failed to store reading",
            user_id=str(current_user.id),
            error=str(e),
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to record reading",
        ) from e

    # Evaluation may roll the session back, expiring the reading
    reading_id = reading.id
    evaluation = await evaluate_reading(
        db,
        current_user,
        reading,
        notifier,
        timeout=settings.notification_timeout_seconds,
    )

    return ReadingCreatedResponse(
        id=reading_id,
        message="Reading recorded successfully",
        alert_type=evaluation.alert_type.value if evaluation.fired else None,
    )


@router.delete("/{reading_id}", response_model=ReadingDeletedResponse)
async def remove_reading(
    reading_id: uuid.UUID,
    current_user: CurrentUser,
    db: AsyncSession = Depends(get_db),
) -> ReadingDeletedResponse:
    """Delete one of the caller's readings and the alerts it triggered."""
    deleted = await delete_reading(db, current_user.id, reading_id)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Reading not found",
        )
    return ReadingDeletedResponse(message="Reading deleted successfully")


@router.get("/stats", response_model=ReadingStatsResponse)
async def reading_stats(
    current_user: CurrentUser,
    period: StatsPeriod = Query(default="month"),
    db: AsyncSession = Depends(get_db),
) -> ReadingStatsResponse:
    """Count, average, extremes, and time in range (70-180 mg/dL)."""
    return await get_reading_stats(db, current_user.id, period)


@router.get("/trends", response_model=ReadingTrendsResponse)
async def reading_trends(
    current_user: CurrentUser,
    days: int = Query(default=30, ge=1, le=365),
    group_by: TrendGrouping = Query(default="day"),
    db: AsyncSession = Depends(get_db),
) -> ReadingTrendsResponse:
    """Per-hour, per-day, or per-week glucose aggregates."""
    trends = await get_reading_trends(db, current_user.id, days, group_by)
    return ReadingTrendsResponse(trends=trends, group_by=group_by, days=days)
