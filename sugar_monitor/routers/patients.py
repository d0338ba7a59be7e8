"""Provider access to linked patients."""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from sugar_monitor.core.auth import ProviderUser
from sugar_monitor.database import get_db
from sugar_monitor.models.user import User
from sugar_monitor.schemas.patient import (
    PatientDetailResponse,
    PatientListResponse,
    PatientReadingsResponse,
)
from sugar_monitor.schemas.reading import ReadingResponse
from sugar_monitor.services.audit_service import log_activity
from sugar_monitor.services.patients import (
    get_patient_detail,
    get_patient_readings,
    has_active_link,
    list_patients,
)

router = APIRouter(prefix="/api/users", tags=["patients"])


async def _require_link(
    db: AsyncSession, provider: User, patient_id: uuid.UUID
) -> None:
    if not await has_active_link(db, provider.id, patient_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied to this patient",
        )


@router.get("/patients", response_model=PatientListResponse)
async def linked_patients(
    provider: ProviderUser,
    db: AsyncSession = Depends(get_db),
) -> PatientListResponse:
    """Patients with an active link to the calling provider."""
    patients = await list_patients(db, provider.id)
    await log_activity(db, provider.id, "VIEW", "patients")
    return PatientListResponse(patients=patients)


@router.get("/patients/{patient_id}", response_model=PatientDetailResponse)
async def patient_detail(
    patient_id: uuid.UUID,
    provider: ProviderUser,
    db: AsyncSession = Depends(get_db),
) -> PatientDetailResponse:
    """Profile, 30-day statistics, and the five most recent alerts."""
    await _require_link(db, provider, patient_id)

    detail = await get_patient_detail(db, patient_id)
    if detail is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Patient not found",
        )

    await log_activity(db, provider.id, "VIEW", "patient_details", patient_id)
    return detail


@router.get("/patients/{patient_id}/readings", response_model=PatientReadingsResponse)
async def patient_readings(
    patient_id: uuid.UUID,
    provider: ProviderUser,
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
) -> PatientReadingsResponse:
    """A linked patient's readings, newest first."""
    await _require_link(db, provider, patient_id)

    readings = await get_patient_readings(
        db, patient_id, start=start_date, end=end_date, limit=limit
    )
    await log_activity(db, provider.id, "VIEW", "patient_readings", patient_id)
    return PatientReadingsResponse(
        readings=[ReadingResponse.model_validate(r) for r in readings]
    )
