"""Provider read access to linked patients.

A provider sees a patient only through an active PatientProvider link.
"""

import uuid
from datetime import UTC, datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.logging_config import get_logger
from sugar_monitor.models.alert_history import AlertHistory
from sugar_monitor.models.patient_provider import PatientProvider
from sugar_monitor.models.reading import Reading
from sugar_monitor.models.user import User, UserRole
from sugar_monitor.schemas.patient import (
    PatientDetailResponse,
    PatientProfile,
    PatientStats,
    PatientSummary,
    RecentAlert,
)
from sugar_monitor.services.readings import TARGET_RANGE_HIGH, TARGET_RANGE_LOW

logger = get_logger(__name__)

RECENT_WINDOW = timedelta(days=30)
RECENT_ALERT_LIMIT = 5


async def has_active_link(
    db: AsyncSession,
    provider_id: uuid.UUID,
    patient_id: uuid.UUID,
) -> bool:
    result = await db.execute(
        select(PatientProvider.id).where(
            PatientProvider.provider_id == provider_id,
            PatientProvider.patient_id == patient_id,
            PatientProvider.active.is_(True),
        )
    )
    return result.first() is not None


async def list_patients(
    db: AsyncSession,
    provider_id: uuid.UUID,
    now: datetime | None = None,
) -> list[PatientSummary]:
    """Linked patients ordered by name, with their 30-day reading counts."""
    now = now or datetime.now(UTC)

    result = await db.execute(
        select(PatientProvider, User)
        .join(User, User.id == PatientProvider.patient_id)
        .where(
            PatientProvider.provider_id == provider_id,
            PatientProvider.active.is_(True),
        )
        .order_by(User.last_name.asc(), User.first_name.asc())
    )
    links = result.all()
    if not links:
        return []

    patient_ids = [user.id for _, user in links]
    counts_result = await db.execute(
        select(Reading.user_id, func.count(Reading.id))
        .where(
            Reading.user_id.in_(patient_ids),
            Reading.timestamp >= now - RECENT_WINDOW,
        )
        .group_by(Reading.user_id)
    )
    counts = {user_id: count for user_id, count in counts_result.all()}

    return [
        PatientSummary(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            relationship_type=link.relationship_type,
            relationship_since=link.created_at,
            recent_readings=counts.get(user.id, 0),
        )
        for link, user in links
    ]


async def get_patient_detail(
    db: AsyncSession,
    patient_id: uuid.UUID,
    now: datetime | None = None,
) -> PatientDetailResponse | None:
    """Profile, 30-day statistics, and the latest alerts of a patient.

    Returns None when the id does not belong to a patient account.
    """
    now = now or datetime.now(UTC)
    since = now - RECENT_WINDOW

    patient = (
        await db.execute(
            select(User).where(User.id == patient_id, User.role == UserRole.PATIENT)
        )
    ).scalar_one_or_none()
    if patient is None:
        return None

    in_window = (Reading.user_id == patient_id, Reading.timestamp >= since)
    aggregate = (
        await db.execute(
            select(
                func.count(Reading.id),
                func.avg(Reading.glucose_level),
                func.min(Reading.glucose_level),
                func.max(Reading.glucose_level),
            ).where(*in_window)
        )
    ).one()
    low_readings = await db.scalar(
        select(func.count(Reading.id)).where(
            *in_window, Reading.glucose_level < TARGET_RANGE_LOW
        )
    )
    high_readings = await db.scalar(
        select(func.count(Reading.id)).where(
            *in_window, Reading.glucose_level > TARGET_RANGE_HIGH
        )
    )

    total, avg_glucose, min_glucose, max_glucose = aggregate
    stats = PatientStats(
        total_readings=total or 0,
        avg_glucose=round(float(avg_glucose), 2) if avg_glucose is not None else None,
        min_glucose=min_glucose,
        max_glucose=max_glucose,
        low_readings=low_readings or 0,
        high_readings=high_readings or 0,
    )

    alerts = (
        await db.scalars(
            select(AlertHistory)
            .where(AlertHistory.user_id == patient_id)
            .order_by(AlertHistory.created_at.desc())
            .limit(RECENT_ALERT_LIMIT)
        )
    ).all()

    return PatientDetailResponse(
        patient=PatientProfile.model_validate(patient),
        stats=stats,
        recent_alerts=[RecentAlert.model_validate(a) for a in alerts],
    )


async def get_patient_readings(
    db: AsyncSession,
    patient_id: uuid.UUID,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 50,
) -> list[Reading]:
    """A patient's readings, newest first."""
    query = select(Reading).where(Reading.user_id == patient_id)
    if start is not None:
        query = query.where(Reading.timestamp >= start)
    if end is not None:
        query = query.where(Reading.timestamp <= end)
    query = query.order_by(Reading.timestamp.desc()).limit(limit)

    return list((await db.scalars(query)).all())
