"""Alert configuration schemas.

Notification destinations are a tagged union discriminated by ``kind``.
"""

import re
import uuid
from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

PHONE_RE = re.compile(r"^\+?[1-9]\d{6,14}$")


class EmailDestination(BaseModel):
    """Deliver notifications by email."""

    kind: Literal["email"] = "email"
    address: EmailStr


class SmsDestination(BaseModel):
    """Deliver notifications by SMS (E.164 number)."""

    kind: Literal["sms"] = "sms"
    number: str

    @field_validator("number")
    @classmethod
    def validate_number(cls, v: str) -> str:
        v = v.replace(" ", "").replace("-", "")
        if not PHONE_RE.match(v):
            msg = "SMS number must be in international format, e.g. +15551234567"
            raise ValueError(msg)
        return v


class PushDestination(BaseModel):
    """Deliver notifications to a registered mobile device."""

    kind: Literal["push"] = "push"
    device_token: str = Field(..., min_length=8, max_length=512)


NotificationDestination = Annotated[
    Union[EmailDestination, SmsDestination, PushDestination],
    Field(discriminator="kind"),
]


class AlertConfigInput(BaseModel):
    """Request schema for creating or replacing the alert configuration.

    ``notification_emails`` is shorthand for email destinations and is
    merged into ``notification_destinations``.
    """

    high_threshold: float = Field(
        ...,
        ge=100.0,
        le=500.0,
        description="High threshold (mg/dL). Range: 100-500.",
    )
    low_threshold: float = Field(
        ...,
        ge=30.0,
        le=100.0,
        description="Low threshold (mg/dL). Range: 30-100.",
    )
    notification_destinations: list[NotificationDestination] = Field(
        default_factory=list,
        max_length=20,
    )
    notification_emails: list[EmailStr] = Field(default_factory=list, max_length=20)

    @model_validator(mode="after")
    def validate_threshold_ordering(self) -> "AlertConfigInput":
        """Ensure high_threshold > low_threshold."""
        if self.high_threshold <= self.low_threshold:
            msg = "High threshold must be greater than low threshold"
            raise ValueError(msg)
        return self

    def all_destinations(self) -> list[EmailDestination | SmsDestination | PushDestination]:
        """Explicit destinations followed by the shorthand email addresses."""
        return [
            *self.notification_destinations,
            *(EmailDestination(address=a) for a in self.notification_emails),
        ]


class AlertConfigResponse(BaseModel):
    """Response schema for the alert configuration."""

    model_config = {"from_attributes": True}

    id: uuid.UUID
    high_threshold: float
    low_threshold: float
    enabled: bool
    notification_destinations: list[NotificationDestination]
    created_at: datetime
    updated_at: datetime


class AlertConfigSavedResponse(BaseModel):
    message: str
    created: bool
    config: AlertConfigResponse


class AlertConfigToggleResponse(BaseModel):
    message: str
    enabled: bool
