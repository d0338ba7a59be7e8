"""Per-user alert configuration model.

One row per user holding the glucose thresholds and where notifications
for threshold breaches are delivered.
"""

import uuid
from typing import Any

from sqlalchemy import JSON, Boolean, Float, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sugar_monitor.models.base import Base, TimestampMixin


class AlertConfig(Base, TimestampMixin):
    """User-specific alert thresholds and notification destinations.

    One-to-one with User (unique user_id). high_threshold > low_threshold is
    validated before every write.
    """

    __tablename__ = "alert_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        index=True,
    )

    # Glucose thresholds (mg/dL)
    high_threshold: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=180.0,
    )

    low_threshold: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=70.0,
    )

    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # List of {"kind": "email", "address": ...} / {"kind": "sms", "number": ...}
    # / {"kind": "push", "device_token": ...}
    notification_destinations: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON,
        nullable=False,
        default=list,
    )

    user = relationship("User", back_populates="alert_config")

    @property
    def email_addresses(self) -> list[str]:
        """Addresses of the email destinations, in configured order."""
        return [
            d["address"]
            for d in self.notification_destinations or []
            if d.get("kind") == "email" and d.get("address")
        ]

    def __repr__(self) -> str:
        return (
            f"<AlertConfig(user_id={self.user_id}, "
            f"low={self.low_threshold}, high={self.high_threshold}, "
            f"enabled={self.enabled})>"
        )
