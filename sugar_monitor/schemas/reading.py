"""Glucose reading schemas."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import AwareDatetime, BaseModel, Field, field_validator

from sugar_monitor.models.reading import ReadingContext


class ReadingCreate(BaseModel):
    """Request schema for recording a reading."""

    glucose_level: float = Field(
        ...,
        ge=20.0,
        le=800.0,
        description="Glucose level (mg/dL). Range: 20-800.",
    )
    # Stored as timestamptz, so the offset must be explicit
    timestamp: AwareDatetime
    context: ReadingContext
    notes: str | None = Field(default=None, max_length=500)
    medication_taken: bool = False
    carbs_consumed: int = Field(default=0, ge=0, le=500)
    exercise_duration: int = Field(default=0, ge=0, le=480)
    stress_level: int | None = Field(default=None, ge=1, le=10)

    @field_validator("context", mode="before")
    @classmethod
    def normalize_context(cls, v):
        # Accept FASTING / fasting alike
        return v.lower() if isinstance(v, str) else v

    @field_validator("notes")
    @classmethod
    def strip_notes(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        return v or None


class ReadingCreatedResponse(BaseModel):
    id: uuid.UUID
    message: str
    alert_type: str | None = None


class ReadingResponse(BaseModel):
    """Response schema for a stored reading."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    glucose_level: float
    timestamp: datetime
    context: ReadingContext
    notes: str | None
    medication_taken: bool
    carbs_consumed: int
    exercise_duration: int
    stress_level: int | None
    created_at: datetime


StatsPeriod = Literal["week", "month", "quarter", "year"]
TrendGrouping = Literal["hour", "day", "week"]


class ReadingStatsResponse(BaseModel):
    total_readings: int
    average_glucose: float | None
    min_glucose: float | None
    max_glucose: float | None
    low_readings: int
    high_readings: int
    normal_readings: int
    time_in_range: float
    period: StatsPeriod


class TrendPoint(BaseModel):
    period: str
    avg_glucose: float
    min_glucose: float
    max_glucose: float
    reading_count: int


class ReadingTrendsResponse(BaseModel):
    trends: list[TrendPoint]
    group_by: TrendGrouping
    days: int


class ReadingDeletedResponse(BaseModel):
    message: str
