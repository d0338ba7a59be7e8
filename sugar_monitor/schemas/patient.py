"""Provider-facing patient schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel

from sugar_monitor.models.alert_history import AlertType
from sugar_monitor.schemas.reading import ReadingResponse


class PatientSummary(BaseModel):
    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    relationship_type: str
    relationship_since: datetime
    recent_readings: int


class PatientListResponse(BaseModel):
    patients: list[PatientSummary]


class PatientStats(BaseModel):
    total_readings: int
    avg_glucose: float | None
    min_glucose: float | None
    max_glucose: float | None
    low_readings: int
    high_readings: int


class RecentAlert(BaseModel):
    model_config = {"from_attributes": True}

    alert_type: AlertType
    message: str
    acknowledged: bool
    created_at: datetime


class PatientProfile(BaseModel):
    model_config = {"from_attributes": True}

    id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    created_at: datetime


class PatientDetailResponse(BaseModel):
    patient: PatientProfile
    stats: PatientStats
    recent_alerts: list[RecentAlert]


class PatientReadingsResponse(BaseModel):
    readings: list[ReadingResponse]
