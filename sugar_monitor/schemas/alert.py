"""Alert history, acknowledgment, and notification endpoint schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from sugar_monitor.models.alert_history import AlertType
from sugar_monitor.models.reading import ReadingContext


class AlertHistoryQuery(BaseModel):
    """Query parameters for listing alert history."""

    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
    alert_type: AlertType | None = None
    acknowledged: bool | None = None


class AlertHistoryItem(BaseModel):
    """One alert joined with its triggering reading."""

    id: uuid.UUID
    alert_type: AlertType
    message: str
    acknowledged: bool
    acknowledged_at: datetime | None
    created_at: datetime
    glucose_level: float | None = None
    reading_timestamp: datetime | None = None
    context: ReadingContext | None = None


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class AlertHistoryResponse(BaseModel):
    alerts: list[AlertHistoryItem]
    pagination: Pagination


class AlertAcknowledgeResponse(BaseModel):
    message: str
    alert_id: uuid.UUID


class EmailTestResponse(BaseModel):
    message: str
    recipients: int


class UserReportFailureResponse(BaseModel):
    user_id: uuid.UUID
    reason: str


class WeeklyReportTriggerResponse(BaseModel):
    """Summary of a weekly report run."""

    message: str
    eligible_users: int
    sent: int
    skipped: int
    failed: int
    failures: list[UserReportFailureResponse]


class SchedulerStatusResponse(BaseModel):
    jobs: dict[str, bool]
