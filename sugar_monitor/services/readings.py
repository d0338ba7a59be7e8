"""Glucose reading storage, statistics, and trends."""

import uuid
from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.core.errors import PersistenceError
from sugar_monitor.logging_config import get_logger
from sugar_monitor.models.reading import Reading
from sugar_monitor.schemas.reading import (
    ReadingCreate,
    ReadingStatsResponse,
    StatsPeriod,
    TrendGrouping,
    TrendPoint,
)
from sugar_monitor.services.alert_history import delete_alerts_for_reading
from sugar_monitor.services.audit_service import log_activity

logger = get_logger(__name__)

# Target range used for stats, independent of a user's alert thresholds
TARGET_RANGE_LOW = 70.0
TARGET_RANGE_HIGH = 180.0

STATS_PERIOD_DAYS: dict[str, int] = {
    "week": 7,
    "month": 30,
    "quarter": 90,
    "year": 365,
}


async def create_reading(
    db: AsyncSession,
    user_id: uuid.UUID,
    body: ReadingCreate,
) -> Reading:
    """Store a reading and commit it.

    Raises:
        PersistenceError: If the reading could not be written.
    """
    reading = Reading(
        user_id=user_id,
        glucose_level=body.glucose_level,
        timestamp=body.timestamp,
        context=body.context,
        notes=body.notes,
        medication_taken=body.medication_taken,
        carbs_consumed=body.carbs_consumed,
        exercise_duration=body.exercise_duration,
        stress_level=body.stress_level,
    )
    db.add(reading)
    try:
        await db.commit()
        await db.refresh(reading)
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(f"Failed to store reading: {e}") from e

    logger.info(
        "Reading recorded",
        user_id=str(user_id),
        reading_id=str(reading.id),
        context=reading.context.value,
    )
    if not await log_activity(db, user_id, "CREATE", "reading", reading.id):
        await db.refresh(reading)
    return reading


async def delete_reading(
    db: AsyncSession,
    user_id: uuid.UUID,
    reading_id: uuid.UUID,
) -> bool:
    """Delete one of the user's readings together with its alerts.

    Returns:
        False if the reading does not exist or belongs to someone else.
    """
    result = await db.execute(
        select(Reading).where(Reading.id == reading_id, Reading.user_id == user_id)
    )
    reading = result.scalar_one_or_none()
    if reading is None:
        return False

    removed_alerts = await delete_alerts_for_reading(db, reading_id)
    await db.delete(reading)
    await db.commit()

    logger.info(
        "Reading deleted",
        user_id=str(user_id),
        reading_id=str(reading_id),
        alerts_removed=removed_alerts,
    )
    await log_activity(db, user_id, "DELETE", "reading", reading_id)
    return True


def summarize_readings(
    glucose_levels: Sequence[float],
    period: StatsPeriod,
) -> ReadingStatsResponse:
    total = len(glucose_levels)
    low = sum(1 for v in glucose_levels if v < TARGET_RANGE_LOW)
    high = sum(1 for v in glucose_levels if v > TARGET_RANGE_HIGH)
    normal = total - low - high

    return ReadingStatsResponse(
        total_readings=total,
        average_glucose=round(sum(glucose_levels) / total, 2) if total else None,
        min_glucose=min(glucose_levels) if total else None,
        max_glucose=max(glucose_levels) if total else None,
        low_readings=low,
        high_readings=high,
        normal_readings=normal,
        time_in_range=round(normal / total * 100, 2) if total else 0.0,
        period=period,
    )


async def get_reading_stats(
    db: AsyncSession,
    user_id: uuid.UUID,
    period: StatsPeriod = "month",
    now: datetime | None = None,
) -> ReadingStatsResponse:
    """Summary statistics over the trailing period."""
    now = now or datetime.now(UTC)
    since = now - timedelta(days=STATS_PERIOD_DAYS[period])

    levels = (
        await db.scalars(
            select(Reading.glucose_level).where(
                Reading.user_id == user_id,
                Reading.timestamp >= since,
            )
        )
    ).all()
    return summarize_readings(levels, period)


def trend_bucket(timestamp: datetime, group_by: TrendGrouping) -> str:
    """Label of the UTC hour, day, or ISO week containing ``timestamp``."""
    moment = timestamp.astimezone(UTC) if timestamp.tzinfo else timestamp
    if group_by == "hour":
        return moment.strftime("%Y-%m-%dT%H:00:00")
    if group_by == "week":
        year, week, _ = moment.isocalendar()
        return f"{year}-W{week}"
    return moment.strftime("%Y-%m-%d")


def build_trends(
    rows: Sequence[tuple[datetime, float]],
    group_by: TrendGrouping,
) -> list[TrendPoint]:
    """Group (timestamp, glucose) rows into buckets, in first-seen order."""
    buckets: dict[str, list[float]] = {}
    for timestamp, value in rows:
        buckets.setdefault(trend_bucket(timestamp, group_by), []).append(value)

    return [
        TrendPoint(
            period=period,
            avg_glucose=round(sum(values) / len(values), 2),
            min_glucose=min(values),
            max_glucose=max(values),
            reading_count=len(values),
        )
        for period, values in buckets.items()
    ]


async def get_reading_trends(
    db: AsyncSession,
    user_id: uuid.UUID,
    days: int = 30,
    group_by: TrendGrouping = "day",
    now: datetime | None = None,
) -> list[TrendPoint]:
    now = now or datetime.now(UTC)
    result = await db.execute(
        select(Reading.timestamp, Reading.glucose_level)
        .where(
            Reading.user_id == user_id,
            Reading.timestamp >= now - timedelta(days=days),
        )
        .order_by(Reading.timestamp.asc())
    )
    return build_trends(result.all(), group_by)
