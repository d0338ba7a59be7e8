"""Alert recorder and alert history queries."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.core.errors import PersistenceError
from sugar_monitor.logging_config import get_logger
from sugar_monitor.models.alert_history import AlertHistory, AlertType
from sugar_monitor.models.reading import Reading
from sugar_monitor.schemas.alert import AlertHistoryItem, AlertHistoryQuery

logger = get_logger(__name__)


async def record_alert(
    db: AsyncSession,
    user_id: uuid.UUID,
    reading_id: uuid.UUID,
    alert_type: AlertType,
    message: str,
) -> AlertHistory:
    """Persist a fired alert and commit it.

    Runs before any notification attempt so the record exists even when
    delivery fails.

    Raises:
        PersistenceError: If the row could not be written.
    """
    alert = AlertHistory(
        user_id=user_id,
        reading_id=reading_id,
        alert_type=alert_type,
        message=message,
        acknowledged=False,
    )
    db.add(alert)
    try:
        await db.commit()
        await db.refresh(alert)
    except SQLAlchemyError as e:
        await db.rollback()
        raise PersistenceError(f"Failed to record {alert_type.value} alert: {e}") from e

    logger.info(
        "Recorded glucose alert",
        user_id=str(user_id),
        reading_id=str(reading_id),
        alert_id=str(alert.id),
        alert_type=alert_type.value,
    )
    return alert


async def acknowledge_alert(
    db: AsyncSession,
    user_id: uuid.UUID,
    alert_id: uuid.UUID,
) -> bool:
    """Mark an alert acknowledged if it belongs to the user and is not yet acked.

    A single conditional UPDATE, so repeated calls are safe: only the first
    one matches and sets acknowledged_at.

    Returns:
        True if a row was updated, False for an unknown id, another user's
        alert, or an alert that was already acknowledged.
    """
    result = await db.execute(
        update(AlertHistory)
        .where(
            AlertHistory.id == alert_id,
            AlertHistory.user_id == user_id,
            AlertHistory.acknowledged.is_(False),
        )
        .values(acknowledged=True, acknowledged_at=datetime.now(UTC))
    )
    await db.commit()

    if result.rowcount == 0:
        return False

    logger.info(
        "Alert acknowledged",
        alert_id=str(alert_id),
        user_id=str(user_id),
    )
    return True


async def list_alert_history(
    db: AsyncSession,
    user_id: uuid.UUID,
    query: AlertHistoryQuery,
) -> tuple[list[AlertHistoryItem], int]:
    """Return a page of the user's alerts (newest first) and the total count."""
    conditions = [AlertHistory.user_id == user_id]
    if query.alert_type is not None:
        conditions.append(AlertHistory.alert_type == query.alert_type)
    if query.acknowledged is not None:
        conditions.append(AlertHistory.acknowledged.is_(query.acknowledged))

    result = await db.execute(
        select(
            AlertHistory,
            Reading.glucose_level,
            Reading.timestamp,
            Reading.context,
        )
        .outerjoin(Reading, Reading.id == AlertHistory.reading_id)
        .where(*conditions)
        .order_by(AlertHistory.created_at.desc())
        .offset(query.offset)
        .limit(query.limit)
    )
    items = [
        AlertHistoryItem(
            id=alert.id,
            alert_type=alert.alert_type,
            message=alert.message,
            acknowledged=alert.acknowledged,
            acknowledged_at=alert.acknowledged_at,
            created_at=alert.created_at,
            glucose_level=glucose_level,
            reading_timestamp=reading_timestamp,
            context=context,
        )
        for alert, glucose_level, reading_timestamp, context in result.all()
    ]

    total = await db.scalar(
        select(func.count()).select_from(AlertHistory).where(*conditions)
    )
    return items, total or 0


async def delete_alerts_for_reading(db: AsyncSession, reading_id: uuid.UUID) -> int:
    """Delete every alert that references the reading. Does not commit."""
    result = await db.execute(
        delete(AlertHistory).where(AlertHistory.reading_id == reading_id)
    )
    return result.rowcount or 0
